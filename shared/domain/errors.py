"""
Error taxonomy shared by the order and shipment services.

Every error carries a ``context`` dict (entity id, attempted transition,
remote service name) so the HTTP layer and the logs can report it precisely.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for every error the services raise on purpose."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        return self.message


class NotFound(ServiceError):
    """An order, shipment or user lookup found nothing. Never retried."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity.capitalize()} not found with id: {entity_id}",
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(ServiceError):
    """Malformed input, or input referencing something that does not exist."""

    def __init__(self, message: str, field: Optional[str] = None, **context: Any):
        super().__init__(message, field=field, **context)
        self.field = field


class InvalidTransition(ServiceError):
    """A status change outside the entity's transition graph was requested."""

    def __init__(self, current: Any, target: Any, entity: str = "entity", entity_id: Any = None):
        current_name = getattr(current, "value", current)
        target_name = getattr(target, "value", target)
        super().__init__(
            f"Invalid status transition from {current_name} to {target_name}",
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            current_status=current_name,
            target_status=target_name,
        )
        self.current = current
        self.target = target
        self.entity = entity
        self.entity_id = entity_id


class RemoteServiceUnavailable(ServiceError):
    """Retries against a remote collaborator were exhausted."""

    def __init__(self, service: str, operation: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(
            f"{service} is unavailable",
            service=service,
            operation=operation,
        )
        self.service = service
        self.operation = operation
        self.cause = cause


class RemoteAuthError(ServiceError):
    """A remote collaborator could not be called with valid credentials."""

    def __init__(self, service: str, reason: str):
        super().__init__(
            f"Authentication against {service} failed: {reason}",
            service=service,
            reason=reason,
        )
        self.service = service
        self.reason = reason


class PublishFailure(ServiceError):
    """An event could not be handed to the message channel.

    Raised and caught inside the event publisher only; it never reaches a caller.
    """

    def __init__(self, channel: str, order_id: Any, cause: Optional[BaseException] = None):
        super().__init__(
            f"Failed to publish event for order {order_id} to {channel}",
            channel=channel,
            order_id=str(order_id) if order_id is not None else None,
        )
        self.channel = channel
        self.order_id = order_id
        self.cause = cause

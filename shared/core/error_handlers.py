"""
Maps the shared error taxonomy onto HTTP problem-detail responses.

Each service calls register_error_handlers(app) once in main.py.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.domain.errors import (
    InvalidTransition,
    NotFound,
    RemoteAuthError,
    RemoteServiceUnavailable,
    ServiceError,
    ValidationError,
)
from .logging_config import get_logger

logger = get_logger(__name__)

PROBLEM_JSON = "application/problem+json"
ERROR_TYPE_BASE = "about:blank#"


def problem(status_code: int, title: str, detail: str, **properties: Any) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": ERROR_TYPE_BASE + title.lower().replace(" ", "-"),
        "title": title,
        "status": status_code,
        "detail": detail,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    body.update(properties)
    return JSONResponse(status_code=status_code, content=body, media_type=PROBLEM_JSON)


# (exception class, status code, title), most specific first
_ERROR_MAP = [
    (NotFound, status.HTTP_404_NOT_FOUND, "Not Found"),
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Validation Error"),
    (InvalidTransition, status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid Status Transition"),
    (RemoteServiceUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE, "Upstream Service Unavailable"),
    (RemoteAuthError, status.HTTP_502_BAD_GATEWAY, "Upstream Authentication Failed"),
]


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def register_error_handlers(app: FastAPI) -> None:

    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        for error_cls, status_code, title in _ERROR_MAP:
            if isinstance(exc, error_cls):
                break
        else:
            status_code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error"

        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"{title}: {exc.message}",
            extra={'extra_fields': {'path': request.url.path, **exc.context}}
        )
        return problem(
            status_code,
            title,
            exc.message,
            **{_camel(k): v for k, v in exc.context.items()},
        )

    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        field_errors = {
            ".".join(str(p) for p in err["loc"] if p != "body"): err["msg"]
            for err in exc.errors()
        }
        logger.warning(
            "Validation failed",
            extra={'extra_fields': {'path': request.url.path, 'field_errors': field_errors}}
        )
        return problem(
            status.HTTP_400_BAD_REQUEST,
            "Validation Error",
            "Validation failed for one or more fields",
            fieldErrors=field_errors,
        )

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unexpected error on {request.url.path}", exc_info=exc)
        return problem(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal Server Error",
            "An unexpected error occurred",
        )

    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

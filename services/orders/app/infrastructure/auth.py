"""
Machine-to-machine credentials for outbound calls.

The order service authenticates as itself (client credentials grant) and
keeps one access token per remote service identity. Tokens are fetched on
first use and refreshed shortly before they expire.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx
import jwt

from shared.core import get_logger
from shared.domain.errors import RemoteAuthError

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float

    def is_valid(self, now: float, skew: float = 0.0) -> bool:
        return now < self.expires_at - skew


class ClientCredentialsProvider:
    """Exchanges client id/secret for an access token at the token endpoint."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: Optional[str] = None,
        default_lifetime: int = 300,
        http_client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.default_lifetime = default_lifetime
        self.http = http_client or httpx.Client(timeout=5.0)
        self.clock = clock

    def fetch(self, audience: str) -> AccessToken:
        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if self.scope:
            form["scope"] = self.scope
        response = self.http.post(self.token_url, data=form, headers={"Accept": "application/json"})
        response.raise_for_status()
        body = response.json()
        value = body["access_token"]
        return AccessToken(value=value, expires_at=self.clock() + self._lifetime(body, value))

    def _lifetime(self, body: dict, token: str) -> float:
        if body.get("expires_in"):
            return float(body["expires_in"])
        # Fall back to the token's own exp claim; we only read it, the remote verifies it
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
            if "exp" in claims:
                return max(float(claims["exp"]) - self.clock(), 0.0)
        except jwt.PyJWTError:
            pass
        return float(self.default_lifetime)


class TokenCache:
    """
    Access tokens keyed by remote service identity.

    Owned by the remote clients and passed to them explicitly; a cache with
    no provider hands out no tokens (M2M disabled).
    """

    def __init__(
        self,
        provider: Optional[ClientCredentialsProvider],
        skew_seconds: float = 30,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.skew_seconds = skew_seconds
        self.clock = clock
        self._tokens: Dict[str, AccessToken] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def get(self, service: str) -> Optional[str]:
        """A valid token for service, refreshing it when absent or about to expire."""
        if self.provider is None:
            return None
        with self._lock:
            token = self._tokens.get(service)
            if token is None or not token.is_valid(self.clock(), self.skew_seconds):
                logger.debug(f"Fetching M2M token for {service}")
                token = self.provider.fetch(service)
                self._tokens[service] = token
            return token.value

    def invalidate(self, service: str) -> None:
        with self._lock:
            self._tokens.pop(service, None)

    def bearer_headers(self, service: str, allow_anonymous: bool = False) -> Dict[str, str]:
        """Authorization header for service.

        When no token can be had, either because M2M is not configured or
        because acquisition failed, the call goes out without one if the remote
        allows anonymous callers; otherwise RemoteAuthError is raised.
        """
        if not self.enabled:
            if allow_anonymous:
                return {}
            raise RemoteAuthError(service, "no M2M credentials configured")
        try:
            token = self.get(service)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(
                f"Failed to obtain M2M token for {service}: {e}",
                extra={'extra_fields': {'service': service}}
            )
            if allow_anonymous:
                return {}
            raise RemoteAuthError(service, "token acquisition failed") from e
        return {"Authorization": f"Bearer {token}"}

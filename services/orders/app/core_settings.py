from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "orders"
    POSTGRES_USER: str = "eci"
    POSTGRES_PASSWORD: str = "eci"
    # Full SQLAlchemy URL; overrides the POSTGRES_* parts when set
    DATABASE_URL: Optional[str] = None

    # Remote collaborators
    USER_SERVICE_URL: str = "http://users:8000"
    SHIPMENT_SERVICE_URL: str = "http://shipments:8000"
    REMOTE_TIMEOUT_SECONDS: float = 5.0
    USER_SERVICE_ALLOW_ANONYMOUS: bool = False
    SHIPMENT_SERVICE_ALLOW_ANONYMOUS: bool = False

    # Retry policies (applied to transient failures only)
    USER_SERVICE_MAX_ATTEMPTS: int = 3
    SHIPMENT_SERVICE_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_BACKOFF_SECONDS: float = 0.5
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    RETRY_MAX_BACKOFF_SECONDS: float = 5.0

    # Machine-to-machine credentials (client credentials grant).
    # Token acquisition is disabled when M2M_TOKEN_URL is unset.
    M2M_TOKEN_URL: Optional[str] = None
    M2M_CLIENT_ID: str = "order-service"
    M2M_CLIENT_SECRET: str = ""
    M2M_SCOPE: Optional[str] = None
    M2M_TOKEN_EXPIRY_SKEW_SECONDS: int = 30
    M2M_DEFAULT_TOKEN_LIFETIME_SECONDS: int = 300

    # Order events channel
    AWS_REGION: str = "eu-west-1"
    AWS_ENDPOINT_URL: Optional[str] = None
    ORDER_EVENTS_QUEUE: str = "order-events"
    SQS_QUEUE_URL: Optional[str] = None

    # Legacy behaviour: cancel regardless of current status (SHIPPED/DELIVERED included)
    ORDER_CANCEL_ANY_STATUS: bool = False

    # A confirm request holds the shipment step for at most this long; an older
    # claim (crashed request) can be taken over by the next confirm
    SHIPMENT_CLAIM_TTL_SECONDS: float = 120.0

    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

@lru_cache
def get_settings() -> Settings:
    return Settings()

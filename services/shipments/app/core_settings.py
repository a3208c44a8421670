from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "shipments"
    POSTGRES_USER: str = "eci"
    POSTGRES_PASSWORD: str = "eci"
    # Full SQLAlchemy URL; overrides the POSTGRES_* parts when set
    DATABASE_URL: Optional[str] = None

    # Attempts at generating a tracking number before giving up on collisions
    TRACKING_NUMBER_ATTEMPTS: int = 3

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

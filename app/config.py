# app/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def _normalize_database_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    url = url.strip()
    # Force psycopg (v3) for Postgres; keep SQLite and explicit drivers as-is
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", case_sensitive=False)

    # Database
    DATABASE_URL: Optional[str] = None

    # Runtime
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"
    APP_NAME: str = "k-H"
    ALLOWED_ORIGINS: str = ""

    # Mail
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASS: str = ""
    EMAIL_FROM: str = ""
    EMAIL_FROM_NAME: str = "k-H"
    SMTP_DISABLE: bool = False

    @property
    def database_url(self) -> Optional[str]:
        return _normalize_database_url(self.DATABASE_URL)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.strip().lower() == "development"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in (self.ALLOWED_ORIGINS or "").split(",") if o.strip()]

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASS and self.sender_address)

    @property
    def sender_address(self) -> str:
        return (self.EMAIL_FROM or self.SMTP_USER).strip()


@lru_cache
def get_settings() -> Settings:
    return Settings()

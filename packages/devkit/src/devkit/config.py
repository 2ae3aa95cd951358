from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    SERVICE_NAME: str = "service"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str | None = None
    REDIS_URL: str | None = None

    LEGACY_DIRECTORY_URL: str | None = None
    LEGACY_DIRECTORY_SERVICE_KEY: str = ""
    LEGACY_ACCOUNTS_TABLE: str = "UserAccounts"
    LEGACY_DETAILS_TABLE: str = "UserDetails"
    LEGACY_DIRECTORY_TIMEOUT_SECONDS: float = 5.0

    PASSWORD_HASH_ROUNDS: int = 12
    BULK_MIGRATION_LIMIT: int = 100

    SESSION_COOKIE_NAME: str = "portal_session"
    SESSION_TTL_SECONDS: int = 60 * 60 * 24
    SESSION_COOKIE_SECURE: bool = False

    @property
    def legacy_directory_configured(self) -> bool:
        return bool(self.LEGACY_DIRECTORY_URL and self.LEGACY_DIRECTORY_SERVICE_KEY)


def load_settings(service_name: str) -> ServiceSettings:
    return ServiceSettings(SERVICE_NAME=service_name)

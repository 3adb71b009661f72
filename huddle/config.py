from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
import os


def _get_secret_key() -> str:
    key = os.getenv("SECRET_KEY")
    if not key:
        raise ValueError("SECRET_KEY environment variable is required")
    return key


def _get_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")
    return url


class Settings(BaseSettings):
    APP_NAME: str = "Huddle API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    SECRET_KEY: str = Field(
        default_factory=_get_secret_key,
        description="Shared secret used to verify access tokens from the auth provider",
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = Field(
        default_factory=_get_database_url, description="Database connection URL"
    )
    DB_ECHO: bool = False

    CORS_ORIGINS: str = Field(
        default="http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173",
        description="Comma-separated list of allowed origins",
    )
    ALLOWED_HOSTS: str = Field(
        default="*", description="Comma-separated list of trusted host names"
    )

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60

    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None

    WEBHOOK_SECRET: str | None = None

    TELEGRAM_BOT_TOKEN: str | None = None
    TELEGRAM_CHAT_ID: str | None = None

    POLL_MAX_OPTIONS: int = 10
    POLL_MIN_DURATION_MINUTES: int = 1
    POLL_PROMOTION_THRESHOLD: float = Field(default=0.5, ge=0.0, le=1.0)
    POLL_PROMOTION_INTERVAL_SECONDS: int = Field(default=30, ge=1)

    SCHEDULER_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        if not v:
            raise ValueError("CORS_ORIGINS cannot be empty")

        origins = [origin.strip() for origin in v.split(",")]
        for origin in origins:
            if not origin.startswith(("http://", "https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. Must start with http:// or https://"
                )

        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        return [
            origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()
        ]

    @property
    def allowed_hosts_list(self) -> list[str]:
        return [host.strip() for host in self.ALLOWED_HOSTS.split(",") if host.strip()]

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN and self.TELEGRAM_CHAT_ID)


settings = Settings()  # type: ignore[call-arg]


def _validate_settings() -> None:
    if not os.getenv("SKIP_CONFIG_VALIDATION"):
        from .core.config_validator import EnvironmentValidator

        EnvironmentValidator.validate_or_exit()


_validate_settings()

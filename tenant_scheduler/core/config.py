import os
from dataclasses import dataclass

from dotenv import load_dotenv


PLACEHOLDER_JWT_SECRET = "change-me"


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed explicitly."""

    app_env: str = "development"
    database_url: str = "sqlite:///./tenant_scheduler.db"
    sql_echo: bool = False

    jwt_secret_key: str = PLACEHOLDER_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 60

    default_reminder_minutes: int = 60
    retention_days: int = 365
    create_id_attempts: int = 3

    cors_origins: tuple[str, ...] = ("http://localhost:3000",)
    log_level: str = "INFO"


def load_settings(env_file: str | None = None) -> Settings:
    load_dotenv(env_file)
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        database_url=os.getenv("DATABASE_URL", Settings.database_url),
        sql_echo=_get_bool(os.getenv("SQL_ECHO"), default=False),
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", PLACEHOLDER_JWT_SECRET),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=_get_int(os.getenv("JWT_EXPIRES_MINUTES"), 60),
        default_reminder_minutes=_get_int(os.getenv("DEFAULT_REMINDER_MINUTES"), 60),
        retention_days=_get_int(os.getenv("APPOINTMENT_RETENTION_DAYS"), 365),
        create_id_attempts=_get_int(os.getenv("CREATE_ID_ATTEMPTS"), 3),
        cors_origins=_get_list(os.getenv("CORS_ORIGINS"), Settings.cors_origins),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def validate_runtime_config(settings: Settings) -> None:
    if settings.app_env.lower() == "production" and settings.jwt_secret_key == PLACEHOLDER_JWT_SECRET:
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if not 0 <= settings.default_reminder_minutes <= 10080:
        raise RuntimeError("DEFAULT_REMINDER_MINUTES must be between 0 and 10080.")
    if settings.create_id_attempts < 1:
        raise RuntimeError("CREATE_ID_ATTEMPTS must be at least 1.")

# Fichier: backend/app/core/config.py
from pydantic_settings import BaseSettings
from typing import Optional, List
from pydantic import ValidationError, field_validator
import sys

class Settings(BaseSettings):
    DATABASE_URL: str
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]

    ENVIRONMENT: str = "development"

    # --- Auth configuration ---
    # Access tokens and refresh tokens are signed with distinct keys so that a
    # leaked access secret cannot be used to mint refresh tokens.
    SECRET_KEY: str
    REFRESH_SECRET_KEY: str
    REFRESH_TOKEN_ENCRYPTION_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_COOKIE_NAME: str = "refresh_token"
    REFRESH_COOKIE_PATH: str = "/api/v1/auth"

    # Performance instrumentation
    SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS: int = 300
    DATABASE_CONNECTION_MAX_RETRIES: int = 1
    DATABASE_CONNECTION_RETRY_BACKOFF_SECONDS: float = 1.0

    # Optional bootstrap administrator, created at startup when both are set.
    DEFAULT_ADMIN_EMAIL: Optional[str] = None
    DEFAULT_ADMIN_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: str) -> str:
        """Ensure Postgres URLs always use the asyncpg driver.

        Managed Postgres providers still expose database URLs using the legacy
        ``postgres://`` scheme, which SQLAlchemy no longer understands. Those
        URLs, as well as ``postgresql://`` and psycopg variants, are upgraded to
        ``postgresql+asyncpg://`` so the async engine boots correctly. SQLite
        and other backends are left untouched.
        """

        if not isinstance(value, str):
            return value

        if "+asyncpg" in value:
            return value

        replacements = {
            "postgres://": "postgresql+asyncpg://",
            "postgresql://": "postgresql+asyncpg://",
            "postgresql+psycopg2://": "postgresql+asyncpg://",
            "postgresql+psycopg://": "postgresql+asyncpg://",
        }

        for prefix, target in replacements.items():
            if value.startswith(prefix):
                return target + value[len(prefix) :]

        return value

def _log_settings_validation_error(exc: ValidationError) -> None:
    """Pretty-print missing or invalid environment variables.

    The exception bubbles up during module import, which makes it hard to spot
    which variable is responsible. The structured error payload is written to
    stderr before the exception is re-raised.
    """

    print("Configuration error while loading environment variables:", file=sys.stderr)

    details = exc.errors()
    if details:
        for error in details:
            location = ".".join(str(part) for part in error.get("loc", ()))
            message = error.get("msg", "Unknown validation error")
            type_name = error.get("type")
            hint_parts = [message]
            if type_name:
                hint_parts.append(f"(type={type_name})")
            print(f"  - {location}: {' '.join(hint_parts)}", file=sys.stderr)
    else:
        print(exc, file=sys.stderr)


try:
    settings = Settings()
except ValidationError as exc:  # pragma: no cover - exercised at runtime
    _log_settings_validation_error(exc)
    raise

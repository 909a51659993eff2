# session_gateway/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal, Optional
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# This settings.py file is at <project>/session_gateway/settings.py
# Two .parent calls will get to the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "Session Gateway"
    debug_mode: bool = False
    log_level: str = "INFO"

    # Controls Secure/SameSite cookie attributes and which debug switches are accepted
    deployment_mode: Literal["development", "production"] = "development"

    # CORS configuration
    # Comma-separated list of exact origins (scheme://host[:port])
    allowed_origins: str = ""
    # Local debugging only. Refused outside development mode.
    allow_all_origins: bool = False
    cors_allowed_methods: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    cors_allowed_headers: str = "Content-Type,Authorization"
    cors_preflight_max_age_seconds: int = 600
    rejected_origin_log_window_seconds: int = 60

    # Session cookie and lifetime
    session_secret: Optional[str] = Field(
        default=None,
        description="Key used to sign session cookies. MUST be set for production."
    )
    session_previous_secrets: str = Field(
        default="",
        description="Comma-separated retired signing keys still accepted for verification."
    )
    session_cookie_name: str = "gateway.sid"
    # When unset, derived from deployment_mode (production: Secure + SameSite=None)
    cookie_secure: Optional[bool] = None
    cookie_same_site: Optional[Literal["lax", "strict", "none"]] = None
    cookie_max_age_seconds: int = 60 * 60 * 24 * 7
    session_ttl_seconds: int = 60 * 60 * 24 * 14
    session_touch_after_seconds: int = 60 * 60 * 24
    session_sweep_interval_seconds: int = 600

    # Session store
    session_store_backend: Literal["redis", "memory"] = "redis"
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_ssl: bool = False
    store_operation_timeout_seconds: float = 2.0

    # Identity provider (SQLite credential store)
    sqlite_db_path: str = "./session_gateway_users.sqlite3"
    identity_timeout_seconds: float = 5.0

    # Request body gate
    max_body_bytes: int = 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding='utf-8'
    )


def log_settings(settings: Settings) -> None:
    """Log the effective configuration once at startup, masking secrets."""
    logger.info(f"Settings: app_name='{settings.app_name}', deployment_mode='{settings.deployment_mode}'")
    logger.info(f"Settings: debug_mode={settings.debug_mode}, log_level='{settings.log_level}'")
    logger.info(f"Settings: allowed_origins='{settings.allowed_origins}'")
    logger.info(
        f"Settings: session_secret={'********' if settings.session_secret else 'None'}, "
        f"previous_secrets={'********' if settings.session_previous_secrets else 'None'}"
    )
    logger.info(
        f"Settings: session_store_backend='{settings.session_store_backend}', "
        f"redis={'<url>' if settings.redis_url else f'{settings.redis_host}:{settings.redis_port}/{settings.redis_db}'}"
    )
    logger.info(
        f"Settings: cookie_max_age={settings.cookie_max_age_seconds}s, "
        f"session_ttl={settings.session_ttl_seconds}s, touch_after={settings.session_touch_after_seconds}s"
    )

# session_gateway/config.py
import logging
import secrets
from typing import Literal, Optional, Tuple
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError
from .settings import Settings

logger = logging.getLogger(__name__)

SameSite = Literal["lax", "strict", "none"]


def _split_csv(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _validate_origin(origin: str) -> None:
    """An allow-list entry must be exactly scheme://host[:port]."""
    if origin == "*":
        raise ConfigurationError(
            "ALLOWED_ORIGINS contains '*'. A wildcard origin cannot be combined with credentials; "
            "list the exact origins instead."
        )
    parts = urlsplit(origin)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(f"Invalid origin '{origin}' in ALLOWED_ORIGINS: expected scheme://host[:port].")
    if parts.path or parts.query or parts.fragment or parts.username or parts.password:
        raise ConfigurationError(
            f"Invalid origin '{origin}' in ALLOWED_ORIGINS: origins carry no path, query or credentials."
        )


class GatewayConfig(BaseModel):
    """Immutable configuration handed to every gateway component at construction.

    Built once at startup from Settings. Components never read the
    environment themselves.
    """

    model_config = ConfigDict(frozen=True)

    deployment_mode: Literal["development", "production"]

    allowed_origins: Tuple[str, ...]
    allow_all_origins: bool = False
    cors_allowed_methods: Tuple[str, ...]
    cors_allowed_headers: Tuple[str, ...]
    cors_preflight_max_age_seconds: int = 600
    rejected_origin_log_window_seconds: int = 60

    session_secrets: Tuple[str, ...]
    session_cookie_name: str
    cookie_secure: bool
    cookie_same_site: SameSite
    cookie_max_age_seconds: int
    session_ttl_seconds: int
    session_touch_after_seconds: int
    session_sweep_interval_seconds: int

    session_store_backend: Literal["redis", "memory"]
    redis_url: Optional[str] = None
    store_operation_timeout_seconds: float

    sqlite_db_path: str
    identity_timeout_seconds: float
    max_body_bytes: int

    @property
    def is_production(self) -> bool:
        return self.deployment_mode == "production"

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayConfig":
        """Validate Settings and freeze them. Raises ConfigurationError on unsafe combinations."""
        production = settings.deployment_mode == "production"

        allowed_origins = _split_csv(settings.allowed_origins)
        for origin in allowed_origins:
            _validate_origin(origin)
        if len(set(allowed_origins)) != len(allowed_origins):
            # Keep first occurrence, preserve order
            allowed_origins = tuple(dict.fromkeys(allowed_origins))

        if settings.allow_all_origins:
            if production:
                raise ConfigurationError("ALLOW_ALL_ORIGINS is a local debugging switch and is refused in production.")
            logger.warning("!" * 72)
            logger.warning("ALLOW_ALL_ORIGINS is ENABLED: every origin is accepted WITHOUT credentials.")
            logger.warning("This must never reach a deployed environment.")
            logger.warning("!" * 72)
        elif not allowed_origins:
            logger.warning("ALLOWED_ORIGINS is empty: all cross-origin requests will be rejected.")

        # Cross-site credentialed access in production needs SameSite=None, which requires Secure
        cookie_secure = production if settings.cookie_secure is None else settings.cookie_secure
        cookie_same_site: SameSite = settings.cookie_same_site or ("none" if production else "lax")
        if cookie_same_site == "none" and not cookie_secure:
            raise ConfigurationError("COOKIE_SAME_SITE=none requires COOKIE_SECURE=true.")
        if production and not cookie_secure:
            logger.warning("Production deployment is issuing session cookies without the Secure attribute.")

        secrets_list = []
        if settings.session_secret:
            secrets_list.append(settings.session_secret)
        elif production:
            raise ConfigurationError("SESSION_SECRET must be set in production.")
        else:
            logger.warning(
                "SESSION_SECRET is not set. Using an ephemeral signing key; sessions will not survive a restart."
            )
            secrets_list.append(secrets.token_urlsafe(32))
        secrets_list.extend(_split_csv(settings.session_previous_secrets))

        if settings.session_store_backend == "memory" and production:
            raise ConfigurationError("The in-memory session store is not durable and is refused in production.")

        if settings.cookie_max_age_seconds > settings.session_ttl_seconds:
            raise ConfigurationError(
                f"COOKIE_MAX_AGE_SECONDS ({settings.cookie_max_age_seconds}) must not exceed "
                f"SESSION_TTL_SECONDS ({settings.session_ttl_seconds})."
            )
        if settings.store_operation_timeout_seconds <= 0 or settings.identity_timeout_seconds <= 0:
            raise ConfigurationError("Store and identity timeouts must be positive.")
        for name in (
            "session_ttl_seconds",
            "cookie_max_age_seconds",
            "session_touch_after_seconds",
            "session_sweep_interval_seconds",
            "cors_preflight_max_age_seconds",
            "rejected_origin_log_window_seconds",
            "max_body_bytes",
        ):
            if getattr(settings, name) <= 0:
                raise ConfigurationError(f"{name.upper()} must be positive (got {getattr(settings, name)}).")

        redis_url = settings.redis_url
        if not redis_url:
            scheme = "rediss" if settings.redis_ssl else "redis"
            auth = f":{settings.redis_password}@" if settings.redis_password else ""
            redis_url = f"{scheme}://{auth}{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"

        return cls(
            deployment_mode=settings.deployment_mode,
            allowed_origins=allowed_origins,
            allow_all_origins=settings.allow_all_origins,
            cors_allowed_methods=_split_csv(settings.cors_allowed_methods),
            cors_allowed_headers=_split_csv(settings.cors_allowed_headers),
            cors_preflight_max_age_seconds=settings.cors_preflight_max_age_seconds,
            rejected_origin_log_window_seconds=settings.rejected_origin_log_window_seconds,
            session_secrets=tuple(secrets_list),
            session_cookie_name=settings.session_cookie_name,
            cookie_secure=cookie_secure,
            cookie_same_site=cookie_same_site,
            cookie_max_age_seconds=settings.cookie_max_age_seconds,
            session_ttl_seconds=settings.session_ttl_seconds,
            session_touch_after_seconds=settings.session_touch_after_seconds,
            session_sweep_interval_seconds=settings.session_sweep_interval_seconds,
            session_store_backend=settings.session_store_backend,
            redis_url=redis_url,
            store_operation_timeout_seconds=settings.store_operation_timeout_seconds,
            sqlite_db_path=settings.sqlite_db_path,
            identity_timeout_seconds=settings.identity_timeout_seconds,
            max_body_bytes=settings.max_body_bytes,
        )

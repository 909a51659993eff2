# session_gateway/main.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exception_handlers import http_exception_handler
from starlette.responses import JSONResponse

from .config import GatewayConfig
from .cors.origin_policy import OriginPolicy
from .errors import StoreError
from .gateway.pipeline import GatewayMiddleware
from .identity.endpoints import auth_router
from .identity.resolver import IdentityResolver
from .identity.sqlite_identity_provider import SQLiteIdentityProvider
from .identity.storage_interfaces import AbstractIdentityProvider
from .sessions.cookies import SessionCookieSigner
from .sessions.session_manager import SessionManager
from .sessions.session_store import AbstractSessionStore
from .sessions.storage import create_session_store
from .settings import Settings, log_settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure root logging once, based on debug mode setting."""
    level = "DEBUG" if settings.debug_mode else settings.log_level.upper()
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=level,
            format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
        )
    logging.getLogger("session_gateway").setLevel(level)


async def sweep_expired_sessions(store: AbstractSessionStore, interval_seconds: int) -> None:
    """Periodically remove expired sessions the store does not expire on its own."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await store.sweep_expired()
        except StoreError as e:
            logger.warning(f"Session sweep skipped: {e}")
            continue
        if removed:
            logger.info(f"Session sweep removed {removed} expired session(s).")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[AbstractSessionStore] = None,
    identity_provider: Optional[AbstractIdentityProvider] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Configuration is validated here, before the server accepts traffic; an
    unsafe configuration raises ConfigurationError. The store and identity
    provider can be injected, otherwise they are built from the configuration.
    """
    settings = settings or Settings()
    configure_logging(settings)
    log_settings(settings)
    config = GatewayConfig.from_settings(settings)

    store = store or create_session_store(config)
    identity_provider = identity_provider or SQLiteIdentityProvider(
        db_path=config.sqlite_db_path,
        timeout_seconds=config.identity_timeout_seconds,
    )
    origin_policy = OriginPolicy(config)
    session_manager = SessionManager(store=store, config=config, signer=SessionCookieSigner(config.session_secrets))
    identity_resolver = IdentityResolver(session_manager=session_manager, identity_provider=identity_provider)

    @asynccontextmanager
    async def gateway_lifespan(app_instance: FastAPI):
        """
        Connects the session store and identity provider before traffic is
        accepted, and releases them on shutdown. A store that cannot be
        reached aborts startup.
        """
        logger.info("Application startup initiated.")
        await store.initialize()
        logger.info(f"Session store ready: {type(store).__name__} ({store.connection_state.value}).")
        try:
            await identity_provider.initialize()
        except Exception:
            await store.teardown()
            raise

        sweep_task = asyncio.create_task(
            sweep_expired_sessions(store, config.session_sweep_interval_seconds),
            name="session-sweep",
        )
        try:
            yield
        finally:
            logger.info("Application shutdown initiated.")
            sweep_task.cancel()
            try:
                await sweep_task
            except asyncio.CancelledError:
                pass
            for component in (identity_provider, store):
                try:
                    await component.teardown()
                except Exception as e_td:
                    logger.error(f"Teardown error: {e_td}", exc_info=True)
            logger.info("All components torn down.")

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug_mode,
        version="0.1.0",
        lifespan=gateway_lifespan,
    )
    app.state.config = config
    app.state.session_store = store
    app.state.session_manager = session_manager
    app.state.identity_provider = identity_provider
    app.state.identity_resolver = identity_resolver

    @app.get("/")
    async def root_api():
        return {"message": f"Welcome to {settings.app_name}!"}

    @app.get("/health")
    async def health_api():
        """Liveness plus the session store's current connection state. Never requires authentication."""
        await store.ping()
        return {
            "success": True,
            "mode": config.deployment_mode,
            "store": store.connection_state.value,
        }

    @app.exception_handler(StarletteHTTPException)
    async def uniform_http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and not isinstance(exc.detail, dict):
            return JSONResponse(
                {"detail": {"error": "not_found", "error_description": f"No route for {request.method} {request.url.path}."}},
                status_code=404,
            )
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            {"detail": {"error": "internal_error", "error_description": "Internal server error."}},
            status_code=500,
        )

    app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
    app.add_middleware(
        GatewayMiddleware,
        config=config,
        origin_policy=origin_policy,
        session_manager=session_manager,
        identity_resolver=identity_resolver,
    )

    logger.info(
        f"{settings.app_name} initialized. Mode: {config.deployment_mode}. "
        f"Session store: {type(store).__name__}."
    )
    return app

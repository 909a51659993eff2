# session_gateway/gateway/pipeline.py
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from starlette.datastructures import Headers, MutableHeaders, State
from starlette.requests import cookie_parser
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send

from ..config import GatewayConfig
from ..cors.origin_policy import OriginPolicy, RejectedOriginLog
from ..errors import GatewayError, OriginRejected, PayloadTooLarge, SessionUnavailable
from ..identity.resolver import IdentityResolver
from ..sessions.session_manager import SessionManager

logger = logging.getLogger(__name__)


def error_response(exc: GatewayError, extra_headers: Optional[List[Tuple[bytes, bytes]]] = None) -> JSONResponse:
    """Render a GatewayError the same way FastAPI renders an HTTPException."""
    response = JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    if extra_headers:
        response.raw_headers.extend(extra_headers)
    return response


class GatewayMiddleware:
    """
    Raw ASGI middleware running the gateway stages in a fixed order:
    origin check, preflight, body gate, session load, identity attach.

    The session is committed when the wrapped application starts its
    response, so Set-Cookie and the CORS headers land on whatever response
    the route or error handlers produced.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: GatewayConfig,
        origin_policy: OriginPolicy,
        session_manager: SessionManager,
        identity_resolver: IdentityResolver,
    ):
        self.app = app
        self.config = config
        self.origin_policy = origin_policy
        self.session_manager = session_manager
        self.identity_resolver = identity_resolver
        self.rejected_origins = RejectedOriginLog(config.rejected_origin_log_window_seconds)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        path = scope.get("path", "")

        # Origin check runs before anything reads or writes the session
        origin = headers.get("origin")
        decision = self.origin_policy.decide(origin)
        if not decision.allow:
            self.rejected_origins.report(origin, path)
            await error_response(OriginRejected(origin))(scope, receive, send)
            return
        cors_headers = decision.response_headers()

        if scope["method"] == "OPTIONS" and "access-control-request-method" in headers:
            preflight = Response(status_code=204)
            preflight.raw_headers.extend(self.origin_policy.preflight_headers(decision))
            await preflight(scope, receive, send)
            return

        content_length = headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.config.max_body_bytes:
            logger.warning(f"Rejected {content_length}-byte body on {path} (limit {self.config.max_body_bytes})")
            await error_response(PayloadTooLarge(self.config.max_body_bytes), cors_headers)(scope, receive, send)
            return

        cookie_value = cookie_parser(headers.get("cookie", "")).get(self.config.session_cookie_name)
        try:
            request_session = await self.session_manager.load(cookie_value)
        except SessionUnavailable as exc:
            await error_response(exc, cors_headers)(scope, receive, send)
            return

        state = State(scope.setdefault("state", {}))
        state.request_session = request_session
        self.identity_resolver.attach(state, request_session)

        commit_failed = False

        async def send_wrapper(message: Dict[str, Any]) -> None:
            nonlocal commit_failed

            if message["type"] == "http.response.start":
                try:
                    # A client disconnect must not abort a half-done store write
                    directive = await asyncio.shield(self.session_manager.commit(request_session))
                except SessionUnavailable as exc:
                    commit_failed = True
                    logger.error(f"Session commit failed on {path}; replacing {message['status']} response with 503")
                    await error_response(exc, cors_headers)(scope, receive, send)
                    return

                response_headers = MutableHeaders(scope=message)
                if directive is not None:
                    response_headers.append("set-cookie", directive.header_value(self.config))
                for name, value in cors_headers:
                    if name == b"vary":
                        response_headers.add_vary_header(value.decode("latin-1"))
                    else:
                        response_headers[name.decode("latin-1")] = value.decode("latin-1")

            elif commit_failed:
                # The 503 has already been sent in place of this response
                return

            await send(message)

        await self.app(scope, receive, send_wrapper)

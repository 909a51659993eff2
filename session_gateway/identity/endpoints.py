# session_gateway/identity/endpoints.py
import logging
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request, status

from ..sessions.session_manager import RequestSession
from .dependencies import get_identity_provider, get_identity_resolver, get_request_session, require_principal
from .models import LoginRequest, Principal, PrincipalResponse, RegistrationRequest
from .resolver import IdentityResolver
from .storage_interfaces import AbstractIdentityProvider

logger = logging.getLogger(__name__)
auth_router = APIRouter()


@auth_router.post(
    "/register",
    response_model=PrincipalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a local account and sign in",
    tags=["Authentication"]
)
async def register(
    request_data: RegistrationRequest,
    provider: Annotated[AbstractIdentityProvider, Depends(get_identity_provider)],
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
    request_session: Annotated[RequestSession, Depends(get_request_session)],
):
    principal = await provider.register_user(
        email=request_data.email,
        password=request_data.password,
        display_name=request_data.display_name,
    )
    resolver.login(request_session, principal)
    return PrincipalResponse(principal=principal, message="Account created.")


@auth_router.post(
    "/login",
    response_model=PrincipalResponse,
    summary="Sign in with email and password",
    tags=["Authentication"],
    openapi_extra={
        "requestBody": {"content": {"application/json": {"schema": LoginRequest.model_json_schema()}}}
    },
)
async def login(
    request: Request,
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
    request_session: Annotated[RequestSession, Depends(get_request_session)],
):
    """
    Verifies the credentials and binds the principal to a freshly issued session.

    The body is parsed by hand: any unreadable body or field fails as invalid
    credentials and is never echoed back. The session cookie itself is written
    by the gateway middleware when the response starts.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None
    request_data = LoginRequest.model_validate(body) if isinstance(body, dict) else LoginRequest()

    principal = await resolver.authenticate(request_data.email, request_data.password)
    resolver.login(request_session, principal)
    return PrincipalResponse(principal=principal, message="Signed in.")


@auth_router.post("/logout", summary="Sign out and destroy the session", tags=["Authentication"])
async def logout(
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
    request_session: Annotated[RequestSession, Depends(get_request_session)],
) -> Dict[str, Any]:
    resolver.logout(request_session)
    return {"success": True, "message": "Signed out."}


@auth_router.get(
    "/me",
    response_model=PrincipalResponse,
    summary="Return the signed-in principal",
    tags=["Authentication"]
)
async def me(principal: Annotated[Principal, Depends(require_principal)]):
    return PrincipalResponse(principal=principal)

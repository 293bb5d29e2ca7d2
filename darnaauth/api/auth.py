# api/auth.py
"""
Authentication routes.

Handlers only translate HTTP to service calls; the service result decides
the status code and body.
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..core.errors import AuthError, AuthErrorType
from ..repositories.tokens import DeviceInfo
from ..schemas.responses import ServiceResult
from ..schemas.token import LogoutRequest, RefreshTokenRequest
from ..schemas.user import LoginRequest, RegisterRequest
from ..services import AuthService
from .deps import (
    AuthContext,
    get_auth_context,
    get_auth_service,
    get_bearer_token,
    get_device_info,
)

router = APIRouter(tags=["authentication"])


def render(result: ServiceResult) -> JSONResponse:
    """Serialize a service result with the status code it carries."""
    return JSONResponse(status_code=result.status_code, content=result.to_response_body())


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register a new user")
async def register(
    data: RegisterRequest,
    device_info: DeviceInfo = Depends(get_device_info),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """
    Register a new user and open a first session.

    - **email**: must be a valid, unused email
    - **password**: 8-128 characters with upper case, lower case and a digit
    - **name**: 2-50 characters
    - **role**: visitor (default), individual, business or admin
    """
    return render(await service.register(data, device_info))


@router.post("/login", summary="Log in with email and password")
async def login(
    credentials: LoginRequest,
    device_info: DeviceInfo = Depends(get_device_info),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """
    Authenticate and receive an access/refresh token pair.

    Accounts with two-factor authentication answer ``requires2FA: true``
    until the request carries a valid ``twoFactorToken``.
    """
    return render(await service.login(credentials, device_info))


@router.post("/refresh-token", summary="Rotate a refresh token")
async def refresh_token(
    data: RefreshTokenRequest,
    device_info: DeviceInfo = Depends(get_device_info),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Exchange a refresh token for a new pair. The old refresh token stops working."""
    return render(await service.refresh(data.refresh_token, device_info))


@router.post("/logout", summary="Log out")
async def logout(
    data: Optional[LogoutRequest] = None,
    context: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Revoke the given refresh token. The access token stays valid until it expires."""
    refresh = data.refresh_token if data else None
    return render(await service.logout(context.user_id, refresh))


@router.post("/revoke-all-tokens", summary="Log out from every device")
async def revoke_all_tokens(
    context: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    return render(await service.revoke_all_refresh_tokens(context.user_id))


@router.get("/me", summary="Current user profile")
async def me(
    context: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    return render(await service.get_profile(context.user_id))


@router.get("/validate", summary="Validate an access token")
async def validate(
    token: Optional[str] = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Report whether the bearer token is a valid access token, with its claims."""
    if not token:
        raise AuthError(AuthErrorType.TOKEN_MISSING)
    return render(service.describe_access_token(token))


@router.get("/refresh-tokens", summary="List active sessions")
async def refresh_tokens(
    context: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    return render(await service.list_refresh_tokens(context.user_id))

# api/two_factor.py
"""
Two-factor authentication routes.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..repositories.tokens import DeviceInfo
from ..schemas.two_factor import RecoveryRequest, TwoFactorCode
from ..services import AuthService, TwoFactorService
from .auth import render
from .deps import (
    AuthContext,
    get_auth_context,
    get_auth_service,
    get_device_info,
    get_two_factor_service,
)

two_factor_router = APIRouter(prefix="/2fa", tags=["two-factor"])


@two_factor_router.post("/setup", summary="Start two-factor setup")
async def setup_2fa(
    context: AuthContext = Depends(get_auth_context),
    service: TwoFactorService = Depends(get_two_factor_service),
) -> JSONResponse:
    """Generate a secret and QR code. 2FA stays off until ``/2fa/verify`` succeeds."""
    return render(await service.setup(context.user_id))


@two_factor_router.post("/verify", summary="Confirm two-factor setup")
async def verify_2fa(
    data: TwoFactorCode,
    context: AuthContext = Depends(get_auth_context),
    service: TwoFactorService = Depends(get_two_factor_service),
) -> JSONResponse:
    """Check a code from the authenticator app, enable 2FA and return the recovery codes."""
    return render(await service.confirm(context.user_id, data.token))


@two_factor_router.post("/disable", summary="Disable two-factor authentication")
async def disable_2fa(
    context: AuthContext = Depends(get_auth_context),
    service: TwoFactorService = Depends(get_two_factor_service),
) -> JSONResponse:
    return render(await service.disable(context.user_id))


@two_factor_router.post("/recovery", summary="Log in with a recovery code")
async def recovery_login(
    data: RecoveryRequest,
    device_info: DeviceInfo = Depends(get_device_info),
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Open a session with a single-use recovery code when the authenticator is unavailable."""
    return render(await service.login_with_recovery_code(data.email, data.recovery_code, device_info))

"""
Staff authentication endpoints.

The session token is set as an httponly cookie; API clients may also send
it as a Bearer token.
"""

from fastapi import APIRouter, Depends, Response, status

from orderdesk.api.dependencies import get_app_settings, get_auth_service
from orderdesk.core.config import Settings
from orderdesk.schemas import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
)
from orderdesk.services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def register(
    data: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create a restaurant together with its first ADMIN user."""
    return await auth.register(data)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def login(
    data: LoginRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> LoginResponse:
    token, user = await auth.login(data)
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.jwt_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return LoginResponse(user=user)


@router.post("/logout")
async def logout(response: Response, settings: Settings = Depends(get_app_settings)) -> dict[str, bool]:
    response.delete_cookie(key=settings.auth_cookie_name, path="/")
    return {"success": True}

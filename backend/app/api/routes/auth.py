"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status

from app.api.deps import Cache, CurrentPrincipal, Users, check_auth_rate_limit
from app.api.schemas import SuccessResponse, TokenResponse, UserInfo, UserLogin
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.security import create_access_token, create_refresh_token, decode_refresh_token

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])

REFRESH_COOKIE = "refreshToken"


def _set_refresh_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        REFRESH_COOKIE,
        token,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
    dependencies=[Depends(check_auth_rate_limit)],
    responses={
        401: {"description": "Invalid credentials"},
        429: {"description": "Too many login attempts"},
    },
)
async def login(
    credentials: UserLogin,
    response: Response,
    users: Users,
    cache: Cache,
) -> TokenResponse:
    """
    Authenticate a user and return an access token.

    The refresh token is set as an httpOnly cookie and a session record is
    written to the cache.
    """
    settings = get_settings()
    user = await users.authenticate(credentials.email, credentials.password)

    access_token = create_access_token(user.id, user.role, user.name)
    _set_refresh_cookie(response, create_refresh_token(user.id, user.role, user.name))
    await cache.set_session(user.id, user.name, user.email, user.role)

    logger.info("User logged in", user_id=user.id, role=user.role)

    return TokenResponse(
        access_token=access_token,
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserInfo(id=user.id, name=user.name, email=user.email, role=user.role),
    )


@router.post(
    "/refresh-token",
    response_model=TokenResponse,
    summary="Issue a new access token from the refresh cookie",
)
async def refresh_token(
    refresh: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> TokenResponse:
    settings = get_settings()
    if not refresh:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token not found",
        )

    principal = decode_refresh_token(refresh)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid refresh token",
        )

    return TokenResponse(
        access_token=create_access_token(principal.id, principal.role, principal.name),
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserInfo(id=principal.id, name=principal.name, role=principal.role),
    )


@router.post(
    "/logout",
    response_model=SuccessResponse,
    summary="Clear the refresh cookie and the session record",
)
async def logout(
    response: Response,
    principal: CurrentPrincipal,
    cache: Cache,
) -> SuccessResponse:
    response.delete_cookie(REFRESH_COOKIE)
    await cache.delete_session(principal.id)
    logger.info("User logged out", user_id=principal.id)
    return SuccessResponse(message="Logged out successfully")


@router.get(
    "/verify-auth",
    response_model=UserInfo,
    summary="Verify the access token",
)
async def verify_auth(principal: CurrentPrincipal) -> UserInfo:
    return UserInfo(
        id=principal.id,
        name=principal.name,
        email=principal.email,
        role=principal.role,
    )

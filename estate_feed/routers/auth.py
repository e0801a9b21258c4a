"""
Authentication API endpoints for sign-up, login, token refresh and session lookup.
"""

from fastapi import APIRouter, Depends, status
from typing import Optional

from estate_feed.schemas.auth import (
    AuthSession,
    LoginRequest,
    RefreshTokenRequest,
    SessionResponse,
    SignUpRequest,
    TokenResponse
)
from estate_feed.services.auth import AuthGateway
from estate_feed.services.error_handler import ERROR_RESPONSES
from estate_feed.utils.dependencies import get_auth_gateway, get_optional_session


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="Register with email, password and full name. Returns tokens for the new session.",
    responses={409: {"description": "Email or username already taken"}, 422: ERROR_RESPONSES[422]}
)
async def signup(
    data: SignUpRequest,
    gateway: AuthGateway = Depends(get_auth_gateway)
) -> TokenResponse:
    return await gateway.sign_up(data)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User login",
    description="Authenticate with email and password",
    responses={401: ERROR_RESPONSES[401]}
)
async def login(
    credentials: LoginRequest,
    gateway: AuthGateway = Depends(get_auth_gateway)
) -> TokenResponse:
    return await gateway.sign_in(credentials.email, credentials.password)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh tokens",
    description="Exchange a valid refresh token for a new token pair",
    responses={401: ERROR_RESPONSES[401]}
)
async def refresh(
    request: RefreshTokenRequest,
    gateway: AuthGateway = Depends(get_auth_gateway)
) -> TokenResponse:
    return await gateway.refresh(request.refresh_token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out",
    description="End the current session. Clients discard their tokens."
)
async def logout(
    session: Optional[AuthSession] = Depends(get_optional_session),
    gateway: AuthGateway = Depends(get_auth_gateway)
) -> None:
    await gateway.sign_out(session)


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Current session",
    description="Resolve the caller's session. Missing or unusable tokens resolve to anonymous."
)
async def current_session(
    session: Optional[AuthSession] = Depends(get_optional_session)
) -> SessionResponse:
    if session is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, user_id=session.user_id, email=session.email)

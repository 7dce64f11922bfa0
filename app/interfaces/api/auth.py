"""Auth API routes — register, login, refresh, logout, me."""

from fastapi import APIRouter, Depends, Response, status

from app.core.security import RequestContext
from app.application.services.auth_service import AuthService
from app.application.services.token_service import TokenClaims, TokenPair
from app.domain.models.user import User
from app.domain.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterResponse,
    TokenResponse,
    UserCreate,
    UserRead,
)
from app.interfaces.api.deps import get_current_user, get_request_context, get_token_claims, rate_limit
from app.interfaces.deps import get_auth_service

router = APIRouter(tags=["Auth"])


def _token_response(user: User, pair: TokenPair, expires_in: int) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=expires_in,
        user=UserRead.model_validate(user),
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("register"))],
)
async def register(
    body: UserCreate,
    context: RequestContext = Depends(get_request_context),
    auth: AuthService = Depends(get_auth_service),
):
    user = await auth.register(body, context)
    return RegisterResponse(user_id=user.id)


@router.post("/login", response_model=TokenResponse, dependencies=[Depends(rate_limit("login"))])
async def login(
    body: LoginRequest,
    context: RequestContext = Depends(get_request_context),
    auth: AuthService = Depends(get_auth_service),
):
    user, pair = await auth.login(body.email, body.password, context)
    return _token_response(user, pair, auth.tokens.access_ttl_seconds)


@router.post("/refresh", response_model=TokenResponse, dependencies=[Depends(rate_limit("refresh"))])
async def refresh(
    body: RefreshRequest,
    context: RequestContext = Depends(get_request_context),
    auth: AuthService = Depends(get_auth_service),
):
    user, pair = await auth.refresh(body.refresh_token, context)
    return _token_response(user, pair, auth.tokens.access_ttl_seconds)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    body: LogoutRequest | None = None,
    user: User = Depends(get_current_user),
    claims: TokenClaims = Depends(get_token_claims),
    context: RequestContext = Depends(get_request_context),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.logout(user, claims, context, body.refresh_token if body else None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserRead)
def get_me(user: User = Depends(get_current_user)):
    return UserRead.model_validate(user)

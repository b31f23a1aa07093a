import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, Request

from app.farmhub.core.config import settings
from app.farmhub.core.error_catalog import AppError, AuthorizationError
from app.farmhub.core.security import issue_refresh_token
from app.farmhub.db.session import get_db
from app.farmhub.schemas.auth import (
    LoginRequest,
    OAuth2TokenResponse,
    RefreshTokenRequest,
    RegisteredUser,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from app.farmhub.schemas.errors import DEFAULT_ERROR_RESPONSES
from app.farmhub.services.auth import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login (JSON)",
    description="Login for JSON clients using email or username_or_email.",
)
def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    identifier = payload.email or payload.username_or_email
    trace_id = getattr(request.state, "trace_id", "")
    try:
        user, token = AuthService(db).login(identifier, payload.password)
    except AppError as exc:
        logger.info(
            "Login failed",
            extra={"identifier": identifier, "error_code": exc.error.code, "trace_id": trace_id},
        )
        raise
    request.state.user_id = user.id
    return TokenResponse(
        access_token=token,
        refresh_token=issue_refresh_token(user),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        trace_id=trace_id,
    )


@router.post(
    "/token",
    response_model=OAuth2TokenResponse,
    summary="OAuth2 Token (Swagger/Auth)",
    description="OAuth2 Password Flow endpoint for Swagger Authorize using form-data username/password.",
)
async def oauth2_token(request: Request, db=Depends(get_db)):
    raw_body = (await request.body()).decode()
    form_data = parse_qs(raw_body)
    username = (form_data.get("username") or [""])[0]
    password = (form_data.get("password") or [""])[0]

    _, token = AuthService(db).login(username, password)
    return OAuth2TokenResponse(access_token=token)


@router.post(
    "/refresh-token",
    response_model=TokenResponse,
    responses=DEFAULT_ERROR_RESPONSES,
    summary="Refresh access token",
    description="Exchange a refresh token for a new access token; the refresh token is rotated.",
)
def refresh_token(request: Request, payload: RefreshTokenRequest, db=Depends(get_db)):
    user, token, rotated = AuthService(db).refresh(payload.refresh_token)
    request.state.user_id = user.id
    return TokenResponse(
        access_token=token,
        refresh_token=rotated,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        trace_id=getattr(request.state, "trace_id", ""),
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=201,
    responses={**DEFAULT_ERROR_RESPONSES, 409: {"description": "Username or email already registered"}},
    summary="Self-registration",
    description="Creates an active viewer account without store access.",
)
def register(request: Request, payload: RegisterRequest, db=Depends(get_db)):
    if not settings.REGISTRATION_ENABLED:
        raise AuthorizationError(details={"reason": "registration_disabled"})
    user = AuthService(db).register(payload.username, payload.email, payload.password, payload.full_name)
    return RegisterResponse(
        user=RegisteredUser.model_validate(user),
        trace_id=getattr(request.state, "trace_id", ""),
    )

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.farmhub.core.config import INSECURE_JWT_SECRET, Settings, settings
from app.farmhub.core.error_catalog import InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class TokenData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sub: str
    username: str
    email: str
    role: str | None = None
    associated_store_ids: list[str] = Field(default_factory=list, alias="associatedStoreIds")
    is_superadmin: bool = Field(default=False, alias="isSuperadmin")
    iat: int | None = None
    exp: int


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def issue_token(user, associated_store_ids: Iterable[str] = (), expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(
        {
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "role": user.role,
            "associatedStoreIds": sorted({str(store_id) for store_id in associated_store_ids}),
            "isSuperadmin": bool(user.is_superadmin),
            "type": ACCESS_TOKEN_TYPE,
        },
        expires_delta=expires_delta,
    )


def issue_refresh_token(user, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(
        {"sub": str(user.id), "type": REFRESH_TOKEN_TYPE},
        expires_delta=expires_delta if expires_delta is not None else timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def _claims_expired(token: str) -> bool:
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return False
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return False
    return exp < datetime.now(timezone.utc).timestamp()


def _decode(token: str) -> dict[str, Any]:
    """Expiry wins over every other failure: a token whose ``exp`` is in the
    past raises ``TokenExpiredError`` even when its signature does not verify.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError() from exc
    except JWTError as exc:
        if _claims_expired(token):
            raise TokenExpiredError() from exc
        raise InvalidTokenError() from exc


def verify_token(token: str) -> TokenData:
    """Decode a bearer (access) token."""
    payload = _decode(token)
    if payload.pop("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        raise InvalidTokenError()
    try:
        return TokenData(**payload)
    except (ValidationError, TypeError) as exc:
        raise InvalidTokenError() from exc


def verify_refresh_token(token: str) -> str:
    payload = _decode(token)
    subject = payload.get("sub")
    if payload.get("type") != REFRESH_TOKEN_TYPE or not isinstance(subject, str) or not subject:
        raise InvalidTokenError()
    return subject


def check_jwt_secret(app_settings: Settings) -> None:
    if app_settings.JWT_SECRET != INSECURE_JWT_SECRET:
        return
    if app_settings.is_production:
        raise RuntimeError("JWT_SECRET must be configured in production")
    logger.warning("JWT_SECRET is using the insecure default; set it before deploying")

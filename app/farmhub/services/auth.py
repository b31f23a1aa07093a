import logging

from app.farmhub.core.error_catalog import AppError, ErrorCatalog, InvalidTokenError
from app.farmhub.core.rbac import UserRole
from app.farmhub.core.security import (
    get_password_hash,
    issue_refresh_token,
    issue_token,
    verify_password,
    verify_refresh_token,
)
from app.farmhub.db.models import User
from app.farmhub.repos.user_store_mappings import UserStoreMappingRepository
from app.farmhub.repos.users import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db):
        self.repo = UserRepository(db)
        self.mapping_repo = UserStoreMappingRepository(db)

    def login(self, identifier: str, password: str):
        candidates = [user for user in self.repo.list_by_username_or_email(identifier) if not user.is_deleted]
        if not candidates:
            raise AppError(ErrorCatalog.INVALID_CREDENTIALS)

        inactive_match = None
        for user in candidates:
            if not verify_password(password, user.hashed_password):
                continue
            if not user.is_active:
                inactive_match = user
                continue
            user = self.repo.update_last_login(user)
            return user, self.issue_for(user)

        if inactive_match is not None:
            raise AppError(ErrorCatalog.USER_INACTIVE)
        raise AppError(ErrorCatalog.INVALID_CREDENTIALS)

    def refresh(self, refresh_token: str):
        """Trade a refresh token for a new access token and a rotated refresh token."""
        user = self.repo.find_user_by_id(verify_refresh_token(refresh_token))
        if user is None:
            raise InvalidTokenError()
        if not user.is_active:
            raise AppError(ErrorCatalog.USER_INACTIVE)
        return user, self.issue_for(user), issue_refresh_token(user)

    def register(self, username: str, email: str, password: str, full_name: str | None = None) -> User:
        if self.repo.username_or_email_taken(username, email):
            raise AppError(ErrorCatalog.CONFLICT, details={"username": username, "email": email})
        user = self.repo.create(
            User(
                username=username,
                email=email,
                hashed_password=get_password_hash(password),
                full_name=full_name,
                role=UserRole.VIEWER.value,
                is_superadmin=False,
                is_active=True,
            )
        )
        logger.info("User registered", extra={"user_id": user.id, "username": user.username})
        return user

    def associated_store_ids(self, user) -> list[str]:
        return [mapping.store_id for mapping in self.mapping_repo.find_user_store_mappings(user.id)]

    def issue_for(self, user) -> str:
        return issue_token(user, self.associated_store_ids(user))

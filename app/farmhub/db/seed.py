import logging

from sqlalchemy import select

from app.farmhub.core.config import Settings, settings
from app.farmhub.core.rbac import UserRole
from app.farmhub.core.security import get_password_hash
from app.farmhub.db.models import Base, User

logger = logging.getLogger(__name__)


def init_global_schema(engine) -> None:
    Base.metadata.create_all(bind=engine)


def _get_or_create_superadmin(db, app_settings: Settings):
    user = (
        db.execute(
            select(User).where(
                (User.username == app_settings.SUPERADMIN_USERNAME) | (User.email == app_settings.SUPERADMIN_EMAIL)
            )
        )
        .scalars()
        .first()
    )
    if user:
        return user
    user = User(
        username=app_settings.SUPERADMIN_USERNAME,
        email=app_settings.SUPERADMIN_EMAIL,
        hashed_password=get_password_hash(app_settings.SUPERADMIN_PASSWORD),
        full_name="Superadmin",
        role=UserRole.ADMIN_GLOBAL.value,
        is_superadmin=True,
        is_active=True,
    )
    db.add(user)
    db.flush()
    logger.info("Seeded superadmin user", extra={"username": user.username})
    return user


def seed_defaults(db, app_settings: Settings | None = None) -> None:
    app_settings = app_settings or settings
    if not app_settings.SUPERADMIN_PASSWORD:
        return
    _get_or_create_superadmin(db, app_settings)
    db.commit()

import uuid
from datetime import timedelta

from app.farmhub.core.security import get_password_hash, issue_token
from app.farmhub.db.models import Store, User, UserStoreMapping

DEFAULT_PASSWORD = "Passw0rd!"


def create_store(db, store_id: str = "S1", *, schema_name: str | None = None, is_active: bool = True, **kwargs):
    store = Store(
        id=store_id,
        name=kwargs.pop("name", f"Store {store_id}"),
        schema_name=schema_name if schema_name is not None else f"store_{store_id.lower()}",
        is_active=is_active,
        is_deleted=kwargs.pop("is_deleted", False),
    )
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


def create_user(db, username: str = "alice", *, role: str = "viewer", **kwargs):
    user = User(
        id=kwargs.pop("id", str(uuid.uuid4())),
        username=username,
        email=kwargs.pop("email", f"{username}@example.com"),
        hashed_password=get_password_hash(kwargs.pop("password", DEFAULT_PASSWORD)),
        role=role,
        is_superadmin=kwargs.pop("is_superadmin", False),
        is_active=kwargs.pop("is_active", True),
        is_deleted=kwargs.pop("is_deleted", False),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_mapping(db, user, store, role: str):
    mapping = UserStoreMapping(user_id=user.id, store_id=store.id, role=role)
    db.add(mapping)
    db.commit()
    db.refresh(mapping)
    return mapping


def auth_headers(user, store_ids=(), expires_delta: timedelta | None = None) -> dict:
    token = issue_token(user, store_ids, expires_delta=expires_delta)
    return {"Authorization": f"Bearer {token}"}

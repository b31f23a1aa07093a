from sqlalchemy import select

from app.farmhub.db.models import UserStoreMapping


class UserStoreMappingRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, mapping_id: str):
        stmt = select(UserStoreMapping).where(
            UserStoreMapping.id == mapping_id,
            UserStoreMapping.is_deleted.is_(False),
        )
        return self.db.execute(stmt).scalars().first()

    def find_by_user_and_store(self, user_id: str, store_id: str):
        stmt = select(UserStoreMapping).where(
            UserStoreMapping.user_id == user_id,
            UserStoreMapping.store_id == store_id,
            UserStoreMapping.is_deleted.is_(False),
        )
        return self.db.execute(stmt).scalars().first()

    def find_user_store_mappings(self, user_id: str):
        stmt = (
            select(UserStoreMapping)
            .where(UserStoreMapping.user_id == user_id, UserStoreMapping.is_deleted.is_(False))
            .order_by(UserStoreMapping.created_at.desc())
        )
        return self.db.execute(stmt).scalars().all()

    def list(self, *, user_id: str | None = None, store_id: str | None = None):
        stmt = select(UserStoreMapping).where(UserStoreMapping.is_deleted.is_(False))
        if user_id:
            stmt = stmt.where(UserStoreMapping.user_id == user_id)
        if store_id:
            stmt = stmt.where(UserStoreMapping.store_id == store_id)
        stmt = stmt.order_by(UserStoreMapping.created_at.desc())
        return self.db.execute(stmt).scalars().all()

    def create(self, mapping: UserStoreMapping) -> UserStoreMapping:
        self.db.add(mapping)
        self.db.commit()
        self.db.refresh(mapping)
        return mapping

    def soft_delete(self, mapping: UserStoreMapping) -> UserStoreMapping:
        mapping.is_deleted = True
        self.db.add(mapping)
        self.db.commit()
        self.db.refresh(mapping)
        return mapping

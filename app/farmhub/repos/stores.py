from sqlalchemy import select

from app.farmhub.db.models import Store


class StoreRepository:
    def __init__(self, db):
        self.db = db

    def get_active_by_id(self, store_id: str):
        stmt = select(Store).where(
            Store.id == store_id,
            Store.is_active.is_(True),
            Store.is_deleted.is_(False),
        )
        return self.db.execute(stmt).scalars().first()

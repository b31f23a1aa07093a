from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select

from app.farmhub.db.tenant_models import TenantBase

ModelT = TypeVar("ModelT", bound=TenantBase)


class TenantRepository(Generic[ModelT]):
    """CRUD helpers over one tenant table, bound to a tenant-scoped session.

    Resource modules subclass this with their own model; the session comes
    from the request's resolved tenant data source, never from the global DB.
    """

    model: type[ModelT]

    def __init__(self, db, model: type[ModelT] | None = None):
        self.db = db
        if model is not None:
            self.model = model

    def find_by_id(self, entity_id: Any) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def list(
        self,
        *,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        order_by=None,
    ) -> tuple[list[ModelT], int]:
        stmt = select(self.model)
        count_stmt = select(func.count()).select_from(self.model)
        for column_name, value in (filters or {}).items():
            if value is None:
                continue
            column = getattr(self.model, column_name)
            stmt = stmt.where(column == value)
            count_stmt = count_stmt.where(column == value)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(count_stmt).scalar_one()
        return list(rows), total

    def create(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        self.db.commit()
        self.db.refresh(entity)
        return entity

    def update(self, entity: ModelT, values: dict[str, Any]) -> ModelT:
        for key, value in values.items():
            setattr(entity, key, value)
        self.db.add(entity)
        self.db.commit()
        self.db.refresh(entity)
        return entity

    def delete(self, entity: ModelT) -> None:
        self.db.delete(entity)
        self.db.commit()

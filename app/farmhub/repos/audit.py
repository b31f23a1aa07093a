from app.farmhub.db.tenant_models import AuditLog
from app.farmhub.repos.tenant_base import TenantRepository


class AuditRepository(TenantRepository[AuditLog]):
    model = AuditLog

    def list_for_store(
        self,
        store_id: str,
        *,
        user_id: str | None = None,
        action: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ):
        return self.list(
            filters={"store_id": store_id, "user_id": user_id, "action": action},
            limit=limit,
            offset=offset,
            order_by=AuditLog.created_at.desc(),
        )

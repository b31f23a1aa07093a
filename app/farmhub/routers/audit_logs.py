from fastapi import APIRouter, Depends, Query

from app.farmhub.core.deps import AuthorizedRequest, require_permission, tenant_session
from app.farmhub.core.rbac import Action
from app.farmhub.repos.audit import AuditRepository
from app.farmhub.schemas.audit import AuditLogItem, AuditLogListResponse
from app.farmhub.schemas.errors import STORE_ERROR_RESPONSES

router = APIRouter()

audit_list_guard = require_permission("audit_logs", Action.LIST)


@router.get(
    "/{store_id}/audit-logs",
    response_model=AuditLogListResponse,
    responses=STORE_ERROR_RESPONSES,
)
def list_audit_logs(
    store_id: str,
    user_id: str | None = Query(None),
    action: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    authorized: AuthorizedRequest = Depends(audit_list_guard),
    db=Depends(tenant_session(audit_list_guard)),
):
    rows, total = AuditRepository(db).list_for_store(
        store_id,
        user_id=user_id,
        action=action,
        limit=limit,
        offset=offset,
    )
    return AuditLogListResponse(
        items=[AuditLogItem.model_validate(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
        trace_id=authorized.context.trace_id,
    )

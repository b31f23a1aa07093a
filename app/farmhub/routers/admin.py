import logging

from fastapi import APIRouter, Depends, Request

from app.farmhub.core.context import CurrentUser
from app.farmhub.core.deps import get_tenant_registry, require_superadmin
from app.farmhub.db.tenant_registry import TenantDataSourceRegistry
from app.farmhub.schemas.admin import TenantConnectionStatsResponse, TenantEvictResponse
from app.farmhub.schemas.errors import DEFAULT_ERROR_RESPONSES

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/tenants/connections",
    response_model=TenantConnectionStatsResponse,
    responses=DEFAULT_ERROR_RESPONSES,
)
def tenant_connections(
    request: Request,
    _user: CurrentUser = Depends(require_superadmin),
    registry: TenantDataSourceRegistry = Depends(get_tenant_registry),
):
    stats = registry.connection_stats()
    return TenantConnectionStatsResponse(**stats, trace_id=getattr(request.state, "trace_id", ""))


@router.delete(
    "/tenants/{store_id}/connection",
    response_model=TenantEvictResponse,
    responses=DEFAULT_ERROR_RESPONSES,
)
def evict_tenant_connection(
    request: Request,
    store_id: str,
    user: CurrentUser = Depends(require_superadmin),
    registry: TenantDataSourceRegistry = Depends(get_tenant_registry),
):
    evicted = registry.evict(store_id)
    logger.info(
        "Tenant connection eviction requested",
        extra={"store_id": store_id, "evicted": evicted, "user_id": user.user_id},
    )
    return TenantEvictResponse(store_id=store_id, evicted=evicted, trace_id=getattr(request.state, "trace_id", ""))

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import text

from app.farmhub.core.config import settings
from app.farmhub.core.deps import get_tenant_registry
from app.farmhub.core.error_catalog import ErrorCatalog
from app.farmhub.core.errors import error_response
from app.farmhub.core.metrics import metrics
from app.farmhub.db.session import get_db
from app.farmhub.db.tenant_registry import TenantDataSourceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()
ops_router = APIRouter()


@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "trace_id": getattr(request.state, "trace_id", ""),
    }


@router.get("/ready")
def ready(
    request: Request,
    db=Depends(get_db),
    registry: TenantDataSourceRegistry = Depends(get_tenant_registry),
):
    """Readiness covers the global database only; tenant databases are probed lazily."""
    trace_id = getattr(request.state, "trace_id", "")
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Readiness probe failed", extra={"error_class": exc.__class__.__name__})
        return error_response(
            code=ErrorCatalog.DB_UNAVAILABLE.code,
            message=ErrorCatalog.DB_UNAVAILABLE.message,
            details={"type": exc.__class__.__name__},
            trace_id=trace_id,
            status_code=ErrorCatalog.DB_UNAVAILABLE.status_code,
        )
    return {
        "status": "ready",
        "tenant_connections": registry.connection_stats()["total_connections"],
        "trace_id": trace_id,
    }


@ops_router.get("/metrics")
def get_metrics():
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type)

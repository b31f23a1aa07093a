import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from app.farmhub.api import api_router
from app.farmhub.core.config import settings
from app.farmhub.core.deps import validate_route_permissions
from app.farmhub.core.errors import setup_exception_handlers
from app.farmhub.core.logging import configure_logging
from app.farmhub.core.security import check_jwt_secret
from app.farmhub.db.seed import init_global_schema, seed_defaults
from app.farmhub.db.session import SessionLocal, engine
from app.farmhub.db.tenant_registry import TenantDataSourceRegistry
from app.farmhub.middleware.observability import ObservabilityMiddleware
from app.farmhub.middleware.tenant import RequestContextMiddleware
from app.farmhub.middleware.trace import TraceIdMiddleware

logger = logging.getLogger(__name__)


async def _cleanup_idle_tenants(registry: TenantDataSourceRegistry, interval_sec: float) -> None:
    while True:
        await asyncio.sleep(interval_sec)
        try:
            await run_in_threadpool(registry.cleanup_idle)
        except Exception:
            logger.exception("Idle tenant cleanup failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_jwt_secret(settings)
    validate_route_permissions(app)
    init_global_schema(engine)
    db = SessionLocal()
    try:
        seed_defaults(db, settings)
    finally:
        db.close()

    registry = TenantDataSourceRegistry(SessionLocal, app_settings=settings)
    app.state.tenant_registry = registry
    cleanup_task = asyncio.create_task(_cleanup_idle_tenants(registry, settings.TENANT_CLEANUP_INTERVAL_SEC))
    logger.info("Application started", extra={"environment": settings.ENVIRONMENT})
    try:
        yield
    finally:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
        registry.drain()
        logger.info("Tenant data sources drained")


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()

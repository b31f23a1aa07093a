from fastapi import APIRouter

from app.farmhub.core.config import settings
from app.farmhub.routers.admin import router as admin_router
from app.farmhub.routers.audit_logs import router as audit_logs_router
from app.farmhub.routers.auth import router as auth_router
from app.farmhub.routers.health import ops_router
from app.farmhub.routers.health import router as health_router
from app.farmhub.routers.user_store_mappings import router as user_store_mappings_router
from app.farmhub.routers.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(user_store_mappings_router, prefix="/user-store-mappings", tags=["user-store-mappings"])
api_router.include_router(admin_router, prefix="/admin", tags=["admin"])
# Store-scoped resources live under /tenant/{store_id}/...
api_router.include_router(audit_logs_router, prefix="/tenant", tags=["tenant"])
if settings.METRICS_ENABLED:
    api_router.include_router(ops_router, tags=["ops"])

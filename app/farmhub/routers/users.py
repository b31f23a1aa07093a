from fastapi import APIRouter, Depends, Request

from app.farmhub.core.context import CurrentUser
from app.farmhub.core.deps import get_current_user
from app.farmhub.core.error_catalog import TenantNotFoundError
from app.farmhub.db.session import get_db
from app.farmhub.repos.stores import StoreRepository
from app.farmhub.repos.user_store_mappings import UserStoreMappingRepository
from app.farmhub.repos.users import UserRepository
from app.farmhub.schemas.errors import DEFAULT_ERROR_RESPONSES
from app.farmhub.schemas.users import (
    EffectivePermission,
    EffectivePermissionsResponse,
    MeResponse,
    StoreMembership,
)
from app.farmhub.services.access_control import AccessControlService

router = APIRouter()


@router.get("/me", response_model=MeResponse, responses=DEFAULT_ERROR_RESPONSES)
def me(request: Request, current_user: CurrentUser = Depends(get_current_user), db=Depends(get_db)):
    user = UserRepository(db).find_user_by_id(current_user.user_id)
    mappings = UserStoreMappingRepository(db).find_user_store_mappings(current_user.user_id)
    return MeResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        is_superadmin=user.is_superadmin,
        last_login_at=user.last_login_at,
        associated_store_ids=list(current_user.associated_store_ids),
        stores=[StoreMembership(store_id=mapping.store_id, role=mapping.role) for mapping in mappings],
        trace_id=getattr(request.state, "trace_id", ""),
    )


@router.get(
    "/me/stores/{store_id}/permissions",
    response_model=EffectivePermissionsResponse,
    responses=DEFAULT_ERROR_RESPONSES,
)
def my_store_permissions(
    request: Request,
    store_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
):
    if StoreRepository(db).get_active_by_id(store_id) is None:
        raise TenantNotFoundError(details={"store_id": store_id})
    service = AccessControlService(db)
    decisions = service.effective_permissions(current_user, store_id)
    permissions = []
    for decision in decisions:
        resource, _, action = decision.key.partition(":")
        permissions.append(
            EffectivePermission(
                resource=resource,
                action=action,
                allowed=decision.allowed,
                source=decision.source,
                role=decision.role,
            )
        )
    return EffectivePermissionsResponse(
        user_id=current_user.user_id,
        store_id=store_id,
        permissions=permissions,
        trace_id=getattr(request.state, "trace_id", ""),
    )

import logging

from fastapi import APIRouter, Depends, Query

from app.farmhub.core.deps import AuthorizedRequest, require_permission
from app.farmhub.core.error_catalog import AppError, ErrorCatalog
from app.farmhub.core.rbac import Action
from app.farmhub.db.models import UserStoreMapping
from app.farmhub.db.session import get_db
from app.farmhub.repos.stores import StoreRepository
from app.farmhub.repos.user_store_mappings import UserStoreMappingRepository
from app.farmhub.repos.users import UserRepository
from app.farmhub.schemas.errors import DEFAULT_ERROR_RESPONSES
from app.farmhub.schemas.user_store_mappings import (
    UserStoreMappingCreateRequest,
    UserStoreMappingItem,
    UserStoreMappingListResponse,
    UserStoreMappingResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

list_guard = require_permission("user_store_mappings", Action.LIST)
create_guard = require_permission("user_store_mappings", Action.CREATE)
delete_guard = require_permission("user_store_mappings", Action.DELETE)


@router.get("", response_model=UserStoreMappingListResponse, responses=DEFAULT_ERROR_RESPONSES)
def list_mappings(
    user_id: str | None = Query(None),
    store_id: str | None = Query(None),
    authorized: AuthorizedRequest = Depends(list_guard),
    db=Depends(get_db),
):
    mappings = UserStoreMappingRepository(db).list(user_id=user_id, store_id=store_id)
    return UserStoreMappingListResponse(
        items=[UserStoreMappingItem.model_validate(mapping) for mapping in mappings],
        total=len(mappings),
        trace_id=authorized.context.trace_id,
    )


@router.post(
    "",
    response_model=UserStoreMappingResponse,
    status_code=201,
    responses={**DEFAULT_ERROR_RESPONSES, 404: {"description": "User or store not found"}, 409: {"description": "Mapping already exists"}},
)
def create_mapping(
    payload: UserStoreMappingCreateRequest,
    authorized: AuthorizedRequest = Depends(create_guard),
    db=Depends(get_db),
):
    if UserRepository(db).find_user_by_id(payload.user_id) is None:
        raise AppError(ErrorCatalog.NOT_FOUND, details={"user_id": payload.user_id})
    if StoreRepository(db).get_active_by_id(payload.store_id) is None:
        raise AppError(ErrorCatalog.NOT_FOUND, details={"store_id": payload.store_id})

    repo = UserStoreMappingRepository(db)
    if repo.find_by_user_and_store(payload.user_id, payload.store_id) is not None:
        raise AppError(
            ErrorCatalog.CONFLICT,
            details={"user_id": payload.user_id, "store_id": payload.store_id},
        )
    mapping = repo.create(
        UserStoreMapping(
            user_id=payload.user_id,
            store_id=payload.store_id,
            role=payload.role,
            created_by_user_id=authorized.user.user_id,
        )
    )
    logger.info(
        "User store mapping created",
        extra={
            "mapping_id": mapping.id,
            "user_id": mapping.user_id,
            "store_id": mapping.store_id,
            "role": mapping.role,
            "created_by": authorized.user.user_id,
        },
    )
    return UserStoreMappingResponse(
        mapping=UserStoreMappingItem.model_validate(mapping),
        trace_id=authorized.context.trace_id,
    )


@router.delete(
    "/{mapping_id}",
    response_model=UserStoreMappingResponse,
    responses={**DEFAULT_ERROR_RESPONSES, 404: {"description": "Mapping not found"}},
)
def delete_mapping(
    mapping_id: str,
    authorized: AuthorizedRequest = Depends(delete_guard),
    db=Depends(get_db),
):
    repo = UserStoreMappingRepository(db)
    mapping = repo.get_by_id(mapping_id)
    if mapping is None:
        raise AppError(ErrorCatalog.NOT_FOUND, details={"mapping_id": mapping_id})
    mapping = repo.soft_delete(mapping)
    logger.info(
        "User store mapping removed",
        extra={"mapping_id": mapping.id, "removed_by": authorized.user.user_id},
    )
    return UserStoreMappingResponse(
        mapping=UserStoreMappingItem.model_validate(mapping),
        trace_id=authorized.context.trace_id,
    )

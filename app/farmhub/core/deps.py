from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.dependencies.models import Dependant
from fastapi.routing import APIRoute
from starlette.concurrency import run_in_threadpool

from app.farmhub.core.context import (
    CurrentUser,
    RequestContext,
    build_request_context,
    current_user_from_model,
)
from app.farmhub.core.error_catalog import (
    AppError,
    AuthorizationError,
    ErrorCatalog,
    InvalidTokenError,
    PermissionConfigurationError,
)
from app.farmhub.core.metrics import metrics
from app.farmhub.core.rbac import Action, Condition, ConditionOperator, PermissionRule
from app.farmhub.core.security import TokenData, oauth2_scheme, verify_token
from app.farmhub.db.session import get_db
from app.farmhub.db.tenant_registry import TenantDataSource, TenantDataSourceRegistry
from app.farmhub.repos.users import UserRepository
from app.farmhub.services.access_control import AccessControlService, PermissionDecision
from app.farmhub.services.access_control_policies import DEFAULT_POLICY_TABLE, PolicyTable
from app.farmhub.services.audit import AuditEventPayload, record_audit

logger = logging.getLogger(__name__)

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


@dataclass(frozen=True)
class AuthorizedRequest:
    user: CurrentUser
    context: RequestContext
    decision: PermissionDecision
    data_source: TenantDataSource | None


def get_current_token_data(token: str | None = Depends(oauth2_scheme)) -> TokenData:
    if not token:
        raise InvalidTokenError()
    return verify_token(token)


def get_current_user(
    request: Request,
    token_data: TokenData = Depends(get_current_token_data),
    db=Depends(get_db),
) -> CurrentUser:
    user = UserRepository(db).find_user_by_id(token_data.sub)
    if user is None:
        raise InvalidTokenError()
    if not user.is_active:
        raise AppError(ErrorCatalog.USER_INACTIVE)
    request.state.user_id = user.id
    return current_user_from_model(user, token_data.associated_store_ids)


def require_superadmin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_superadmin:
        raise AuthorizationError(details={"required": "superadmin"})
    return user


def get_tenant_registry(request: Request) -> TenantDataSourceRegistry:
    return request.app.state.tenant_registry


def _parse_condition(condition: Condition | dict) -> Condition:
    if isinstance(condition, Condition):
        return condition
    try:
        operator = ConditionOperator(condition["operator"])
    except (KeyError, ValueError) as exc:
        raise PermissionConfigurationError(details={"condition": condition}) from exc
    return Condition(field=condition["field"], operator=operator, value=condition.get("value"))


def build_permission_rule(
    resource: str,
    action: str | Action,
    conditions: Iterable[Condition | dict] | None = None,
) -> PermissionRule:
    try:
        parsed_action = Action(action)
    except ValueError as exc:
        raise PermissionConfigurationError(details={"resource": resource, "action": action}) from exc
    return PermissionRule(
        resource=resource,
        action=parsed_action,
        conditions=tuple(_parse_condition(condition) for condition in conditions or ()),
    )


async def _read_json_body(request: Request) -> Any:
    if request.method not in MUTATING_METHODS:
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        return await request.json()
    except ValueError:
        return None


def _target_id(path_params: dict) -> str | None:
    for name, value in path_params.items():
        if name != "store_id" and name.endswith("_id"):
            return str(value)
    return None


def require_permission(
    resource: str,
    action: str | Action,
    conditions: Iterable[Condition | dict] | None = None,
):
    """Guard dependency for one route.

    Runs token → user → tenant → permission in that order and short-circuits on
    the first failure. The rule is exposed as ``dependency.permission``.
    """
    rule = build_permission_rule(resource, action, conditions)

    async def dependency(
        request: Request,
        background_tasks: BackgroundTasks,
        user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
    ) -> AuthorizedRequest:
        store_id = request.path_params.get("store_id")
        data_source = None
        if store_id is not None:
            request.state.store_id = store_id
            registry = get_tenant_registry(request)
            data_source = await run_in_threadpool(registry.get_tenant_data_source, store_id)

        context = build_request_context(
            user_id=user.user_id,
            store_id=store_id,
            trace_id=getattr(request.state, "trace_id", ""),
            params=request.path_params,
            body=await _read_json_body(request) if rule.conditions else None,
        )
        request.state.context = context

        cache = getattr(request.state, "permission_cache", None)
        if cache is None:
            cache = {}
            request.state.permission_cache = cache
        service = AccessControlService(db, cache=cache)
        decision = await run_in_threadpool(service.evaluate, user, rule, context)
        if not decision.allowed:
            metrics.increment_rbac_denied(rule.resource, rule.action.value)
            logger.info(
                "Permission denied",
                extra={
                    "user_id": user.user_id,
                    "store_id": store_id,
                    "permission": rule.key,
                    "source": decision.source,
                    "trace_id": context.trace_id,
                },
            )
            raise AuthorizationError(details={"permission": rule.key})

        if data_source is not None and request.method in MUTATING_METHODS:
            background_tasks.add_task(
                record_audit,
                data_source,
                AuditEventPayload(
                    store_id=data_source.store_id,
                    user_id=user.user_id,
                    username=user.username,
                    action=rule.action.value,
                    target_table=rule.resource,
                    target_id=_target_id(request.path_params),
                    trace_id=context.trace_id,
                    metadata={"method": request.method, "path": request.url.path},
                ),
            )
        return AuthorizedRequest(user=user, context=context, decision=decision, data_source=data_source)

    dependency.permission = rule
    return dependency


def tenant_session(guard):
    """Session bound to the tenant the given guard resolved."""

    def dependency(authorized: AuthorizedRequest = Depends(guard)):
        if authorized.data_source is None:
            raise PermissionConfigurationError(details={"reason": "route has no store_id"})
        db = authorized.data_source.session()
        try:
            yield db
        finally:
            db.close()

    return dependency


def _walk_dependencies(dependant: Dependant) -> Iterable[Any]:
    for sub_dependant in dependant.dependencies:
        yield sub_dependant.call
        yield from _walk_dependencies(sub_dependant)


def collect_route_permissions(app: FastAPI) -> dict[str, PermissionRule]:
    permissions: dict[str, PermissionRule] = {}
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        for call in _walk_dependencies(route.dependant):
            rule = getattr(call, "permission", None)
            if isinstance(rule, PermissionRule):
                for method in sorted(route.methods):
                    permissions[f"{method} {route.path}"] = rule
    return permissions


def validate_route_permissions(app: FastAPI, policy: PolicyTable = DEFAULT_POLICY_TABLE) -> dict[str, PermissionRule]:
    permissions = collect_route_permissions(app)
    for route_key, rule in permissions.items():
        try:
            policy.validate_rule(rule)
        except PermissionConfigurationError:
            logger.error("Route declares an unknown permission", extra={"route": route_key, "permission": rule.key})
            raise
    return permissions


__all__ = [
    "AuthorizedRequest",
    "collect_route_permissions",
    "get_current_token_data",
    "get_current_user",
    "get_tenant_registry",
    "require_permission",
    "require_superadmin",
    "tenant_session",
    "validate_route_permissions",
]

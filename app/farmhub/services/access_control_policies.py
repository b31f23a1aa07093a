"""Static role → grant table consumed by the permission evaluator.

Changing who may do what is a matter of editing this table; the evaluator
itself holds no role knowledge.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from app.farmhub.core.error_catalog import PermissionConfigurationError
from app.farmhub.core.rbac import WILDCARD_RESOURCE, Action, ConditionOperator, PermissionRule, UserRole


@dataclass(frozen=True)
class Grant:
    resource: str
    action: Action

    def matches(self, resource: str, action: Action) -> bool:
        return self.action == action and self.resource in (WILDCARD_RESOURCE, resource)


@dataclass(frozen=True)
class RolePolicy:
    role: UserRole
    grants: frozenset[Grant]
    # Global-scope roles keep their grants in stores they have no mapping for.
    global_scope: bool = False


@dataclass(frozen=True)
class PolicyTable:
    roles: Mapping[UserRole, RolePolicy]
    resources: frozenset[str]

    def grants_for(self, role: UserRole | None) -> frozenset[Grant]:
        policy = self.roles.get(role) if role is not None else None
        return policy.grants if policy else frozenset()

    def is_global_scope(self, role: UserRole | None) -> bool:
        policy = self.roles.get(role) if role is not None else None
        return bool(policy and policy.global_scope)

    def knows_resource(self, resource: str) -> bool:
        return resource == WILDCARD_RESOURCE or resource in self.resources

    def validate_rule(self, rule: PermissionRule) -> None:
        if not isinstance(rule.action, Action):
            raise PermissionConfigurationError(details={"resource": rule.resource, "action": str(rule.action)})
        if not self.knows_resource(rule.resource):
            raise PermissionConfigurationError(details={"resource": rule.resource, "action": rule.action.value})
        for condition in rule.conditions:
            if not isinstance(condition.operator, ConditionOperator):
                raise PermissionConfigurationError(
                    details={"resource": rule.resource, "operator": str(condition.operator)}
                )


def _grants(resource: str, *actions: Action) -> set[Grant]:
    return {Grant(resource=resource, action=action) for action in actions}


def _wildcard() -> frozenset[Grant]:
    return frozenset(_grants(WILDCARD_RESOURCE, *Action))


def _build(entries: Iterable[set[Grant]]) -> frozenset[Grant]:
    grants: set[Grant] = set()
    for entry in entries:
        grants |= entry
    return frozenset(grants)


READ_ONLY = (Action.READ, Action.LIST)
WRITE_NO_DELETE = (Action.CREATE, Action.READ, Action.UPDATE, Action.LIST)

RESOURCES = frozenset(
    {
        "products",
        "orders",
        "customers",
        "categories",
        "suppliers",
        "vouchers",
        "stock_transfers",
        "notifications",
        "users",
        "stores",
        "user_store_mappings",
        "audit_logs",
    }
)

DEFAULT_POLICY_TABLE = PolicyTable(
    resources=RESOURCES,
    roles={
        UserRole.ADMIN_GLOBAL: RolePolicy(UserRole.ADMIN_GLOBAL, _wildcard(), global_scope=True),
        UserRole.ADMIN_STORE: RolePolicy(UserRole.ADMIN_STORE, _wildcard()),
        UserRole.STORE_MANAGER: RolePolicy(
            UserRole.STORE_MANAGER,
            _build(
                [
                    _grants("products", *WRITE_NO_DELETE),
                    _grants("orders", *WRITE_NO_DELETE),
                    _grants("customers", *WRITE_NO_DELETE),
                    _grants("categories", *WRITE_NO_DELETE),
                    _grants("suppliers", *WRITE_NO_DELETE),
                    _grants("vouchers", *WRITE_NO_DELETE),
                    _grants("stock_transfers", *WRITE_NO_DELETE),
                    _grants("notifications", *READ_ONLY),
                    _grants("users", *READ_ONLY),
                    _grants("stores", *READ_ONLY),
                    _grants("audit_logs", *READ_ONLY),
                ]
            ),
        ),
        UserRole.STORE_STAFF: RolePolicy(
            UserRole.STORE_STAFF,
            _build(
                [
                    _grants("products", *READ_ONLY),
                    _grants("orders", Action.CREATE, Action.READ, Action.UPDATE, Action.LIST),
                    _grants("customers", *READ_ONLY),
                    _grants("categories", *READ_ONLY),
                    _grants("notifications", *READ_ONLY),
                ]
            ),
        ),
        UserRole.VIEWER: RolePolicy(
            UserRole.VIEWER,
            _build(
                [
                    _grants("products", *READ_ONLY),
                    _grants("orders", *READ_ONLY),
                    _grants("customers", *READ_ONLY),
                    _grants("categories", *READ_ONLY),
                ]
            ),
        ),
    },
)

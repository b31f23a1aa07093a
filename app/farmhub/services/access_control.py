from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from app.farmhub.core.context import CurrentUser, RequestContext
from app.farmhub.core.error_catalog import PermissionConfigurationError
from app.farmhub.core.rbac import Action, Condition, ConditionOperator, PermissionRule, UserRole
from app.farmhub.repos.user_store_mappings import UserStoreMappingRepository
from app.farmhub.services.access_control_policies import DEFAULT_POLICY_TABLE, Grant, PolicyTable

logger = logging.getLogger(__name__)

REFERENCE_PREFIXES = ("user.", "params.", "body.")
_MISSING = object()


@dataclass(frozen=True)
class PermissionDecision:
    key: str
    allowed: bool
    source: str
    role: str | None = None


class AccessControlService:
    """Decides whether a user may perform an action on a resource.

    Superadmins always pass. Otherwise the effective grant set is the union of
    the user's global role and, for store-scoped checks, the role of the user's
    live mapping to that store. A store-scoped check without a mapping only
    succeeds on a global-scope role.
    """

    def __init__(
        self,
        db,
        cache: dict | None = None,
        policy: PolicyTable = DEFAULT_POLICY_TABLE,
        mapping_repo=None,
    ):
        self.policy = policy
        self.mapping_repo = mapping_repo if mapping_repo is not None else UserStoreMappingRepository(db)
        self.cache = cache if cache is not None else {}

    def has_permission(
        self,
        user: CurrentUser,
        resource: str,
        action: str | Action,
        context: RequestContext | None = None,
        conditions: Iterable[Condition] = (),
    ) -> bool:
        if user.is_superadmin:
            return True
        rule = PermissionRule(resource=resource, action=_parse_action(resource, action), conditions=tuple(conditions))
        return self.evaluate(user, rule, context).allowed

    def evaluate(
        self,
        user: CurrentUser,
        rule: PermissionRule,
        context: RequestContext | None = None,
    ) -> PermissionDecision:
        if user.is_superadmin:
            return PermissionDecision(key=rule.key, allowed=True, source="superadmin")

        self.policy.validate_rule(rule)
        store_id = context.store_id if context is not None else None
        global_role = UserRole.parse(user.role)
        global_grants = self.policy.grants_for(global_role)

        store_role: UserRole | None = None
        store_grants: frozenset[Grant] = frozenset()
        if store_id is not None:
            store_role = self._get_store_role(user.user_id, store_id)
            if store_role is None and not self.policy.is_global_scope(global_role):
                return PermissionDecision(key=rule.key, allowed=False, source="no_store_mapping")
            store_grants = self.policy.grants_for(store_role)

        if _grants_match(store_grants, rule):
            source, role = "store_mapping", store_role
        elif _grants_match(global_grants, rule):
            source, role = "global_role", global_role
        else:
            return PermissionDecision(key=rule.key, allowed=False, source="default_deny")

        if rule.conditions and not self._conditions_hold(rule.conditions, user, context):
            return PermissionDecision(key=rule.key, allowed=False, source="condition_failed", role=role.value)
        return PermissionDecision(key=rule.key, allowed=True, source=source, role=role.value)

    def effective_permissions(self, user: CurrentUser, store_id: str | None = None) -> list[PermissionDecision]:
        context = RequestContext(user_id=user.user_id, store_id=store_id, trace_id="")
        decisions: list[PermissionDecision] = []
        for resource in sorted(self.policy.resources):
            for action in Action:
                rule = PermissionRule(resource=resource, action=action)
                decisions.append(self.evaluate(user, rule, context))
        return decisions

    def _get_store_role(self, user_id: str, store_id: str) -> UserRole | None:
        cache_key = f"store_role:{user_id}:{store_id}"
        if cache_key in self.cache:
            return self.cache[cache_key]
        mapping = self.mapping_repo.find_by_user_and_store(user_id, store_id)
        role = None
        if mapping is not None:
            role = UserRole.parse(mapping.role)
            if role is None:
                logger.warning(
                    "Ignoring store mapping with unknown role",
                    extra={"user_id": user_id, "store_id": store_id, "role": mapping.role},
                )
        self.cache[cache_key] = role
        return role

    def _conditions_hold(
        self,
        conditions: Iterable[Condition],
        user: CurrentUser,
        context: RequestContext | None,
    ) -> bool:
        sources = {
            "user": asdict(user),
            "params": dict(context.params) if context is not None else {},
            "body": dict(context.body) if context is not None else {},
        }
        for condition in conditions:
            actual = _resolve_field(condition.field, sources)
            expected = _resolve_value(condition.value, sources)
            if not _compare(condition.operator, actual, expected):
                return False
        return True


def _parse_action(resource: str, action: str | Action) -> Action:
    if isinstance(action, Action):
        return action
    try:
        return Action(action)
    except ValueError as exc:
        raise PermissionConfigurationError(details={"resource": resource, "action": action}) from exc


def _grants_match(grants: frozenset[Grant], rule: PermissionRule) -> bool:
    return any(grant.matches(rule.resource, rule.action) for grant in grants)


def _lookup(root: Any, path: list[str]) -> Any:
    current = root
    for part in path:
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return _MISSING
    return current


def _resolve_field(field_path: str, sources: dict[str, Any]) -> Any:
    # Bare field names refer to the user.
    head, _, rest = field_path.partition(".")
    if head in sources and rest:
        return _lookup(sources[head], rest.split("."))
    return _lookup(sources["user"], field_path.split("."))


def _resolve_value(value: Any, sources: dict[str, Any]) -> Any:
    if isinstance(value, str) and value.startswith(REFERENCE_PREFIXES):
        return _resolve_field(value, sources)
    return value


def _compare(operator: ConditionOperator, actual: Any, expected: Any) -> bool:
    if actual is _MISSING or expected is _MISSING:
        return False
    if operator == ConditionOperator.EQ:
        return _normalize(actual) == _normalize(expected)
    if operator == ConditionOperator.NE:
        return _normalize(actual) != _normalize(expected)
    if not isinstance(expected, (list, tuple, set, frozenset)):
        return False
    candidates = {_normalize(item) for item in expected}
    if operator == ConditionOperator.IN:
        return _normalize(actual) in candidates
    if operator == ConditionOperator.NOT_IN:
        return _normalize(actual) not in candidates
    raise PermissionConfigurationError(details={"operator": str(operator)})


def _normalize(value: Any) -> Any:
    # Path params arrive as strings; ids elsewhere may not.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value

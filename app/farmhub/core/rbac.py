from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

WILDCARD_RESOURCE = "*"


class UserRole(str, Enum):
    ADMIN_GLOBAL = "admin_global"
    ADMIN_STORE = "admin_store"
    STORE_MANAGER = "store_manager"
    STORE_STAFF = "store_staff"
    VIEWER = "viewer"

    @classmethod
    def parse(cls, value: str | None) -> "UserRole | None":
        """Tolerant lookup for values read from tokens or the database."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"


class ConditionOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    IN = "in"
    NOT_IN = "not_in"


@dataclass(frozen=True)
class Condition:
    field: str
    operator: ConditionOperator
    value: Any


@dataclass(frozen=True)
class PermissionRule:
    resource: str
    action: Action
    conditions: tuple[Condition, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return f"{self.resource}:{self.action.value}"


def own_resource_rule(resource: str, action: Action, *, param: str = "user_id") -> PermissionRule:
    """Rule that only matches when the route's ``param`` is the caller's own user id."""
    return PermissionRule(
        resource=resource,
        action=action,
        conditions=(Condition(field=f"params.{param}", operator=ConditionOperator.EQ, value="user.user_id"),),
    )

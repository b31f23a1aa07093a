from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    username: str
    email: str
    role: str | None
    is_superadmin: bool = False
    associated_store_ids: tuple[str, ...] = ()


def current_user_from_model(user, associated_store_ids=()) -> CurrentUser:
    return CurrentUser(
        user_id=str(user.id),
        username=user.username,
        email=user.email,
        role=user.role,
        is_superadmin=bool(user.is_superadmin),
        associated_store_ids=tuple(str(store_id) for store_id in associated_store_ids),
    )


@dataclass(frozen=True)
class RequestContext:
    """What a permission check may look at besides the user itself."""

    user_id: str | None
    store_id: str | None
    trace_id: str
    params: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)


def build_request_context(
    *,
    user_id: str | None,
    store_id: str | None,
    trace_id: str,
    params: dict[str, Any] | None = None,
    body: Any = None,
) -> RequestContext:
    return RequestContext(
        user_id=user_id,
        store_id=store_id,
        trace_id=trace_id,
        params=dict(params or {}),
        body=body if isinstance(body, dict) else {},
    )


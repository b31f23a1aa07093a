from datetime import datetime

from pydantic import BaseModel


class StoreMembership(BaseModel):
    store_id: str
    role: str


class MeResponse(BaseModel):
    id: str
    username: str
    email: str
    full_name: str | None = None
    role: str | None = None
    is_superadmin: bool
    last_login_at: datetime | None = None
    associated_store_ids: list[str]
    stores: list[StoreMembership]
    trace_id: str


class EffectivePermission(BaseModel):
    resource: str
    action: str
    allowed: bool
    source: str
    role: str | None = None


class EffectivePermissionsResponse(BaseModel):
    user_id: str
    store_id: str
    permissions: list[EffectivePermission]
    trace_id: str

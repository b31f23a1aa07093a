from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AuditLogItem(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    store_id: str
    user_id: str
    username: str | None = None
    action: str
    target_table: str
    target_id: str | None = None
    metadata: dict | None = Field(default=None, validation_alias="event_metadata")
    created_at: datetime


class AuditLogListResponse(BaseModel):
    items: list[AuditLogItem]
    total: int
    limit: int
    offset: int
    trace_id: str

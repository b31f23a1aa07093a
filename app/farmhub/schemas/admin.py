from pydantic import BaseModel


class TenantConnectionItem(BaseModel):
    store_id: str
    schema_name: str
    access_count: int
    age_seconds: float
    idle_seconds: float


class TenantConnectionStatsResponse(BaseModel):
    total_connections: int
    initializing_connections: int
    max_cached_connections: int
    connections: list[TenantConnectionItem]
    trace_id: str


class TenantEvictResponse(BaseModel):
    store_id: str
    evicted: bool
    trace_id: str

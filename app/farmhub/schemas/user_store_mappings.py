from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from app.farmhub.core.rbac import UserRole


class UserStoreMappingCreateRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "8f8a9f38-1f0a-4a62-9b61-8b1bb5b0b0a1",
                "store_id": "S1",
                "role": "store_manager",
            }
        }
    }

    user_id: str
    store_id: str
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, value: str) -> str:
        role = UserRole.parse(value)
        if role is None:
            raise ValueError(f"role must be one of: {', '.join(item.value for item in UserRole)}")
        return role.value


class UserStoreMappingItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    store_id: str
    role: str
    created_by_user_id: str | None = None
    created_at: datetime


class UserStoreMappingListResponse(BaseModel):
    items: list[UserStoreMappingItem]
    total: int
    trace_id: str


class UserStoreMappingResponse(BaseModel):
    mapping: UserStoreMappingItem
    trace_id: str

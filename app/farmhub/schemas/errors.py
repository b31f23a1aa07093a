from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "code": "TENANT_NOT_FOUND",
                "message": "Store not found or inactive",
                "details": {"store_id": "S9"},
                "trace_id": "4f1c2b0e9d7a4c1e8b3f6a2d5e7c9b10",
            }
        }
    }

    code: str
    message: str
    details: dict | list | None = None
    trace_id: str | None = None


DEFAULT_ERROR_RESPONSES = {
    401: {"model": ApiErrorResponse, "description": "Missing, invalid or expired token"},
    403: {"model": ApiErrorResponse, "description": "Permission denied or user inactive"},
    422: {"model": ApiErrorResponse, "description": "Validation error"},
}

STORE_ERROR_RESPONSES = {
    **DEFAULT_ERROR_RESPONSES,
    404: {"model": ApiErrorResponse, "description": "Store not found or inactive"},
    500: {"model": ApiErrorResponse, "description": "Store database unavailable"},
}

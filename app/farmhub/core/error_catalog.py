from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    TOKEN_EXPIRED = ErrorDefinition("TOKEN_EXPIRED", "Token expired", status.HTTP_401_UNAUTHORIZED)
    INVALID_CREDENTIALS = ErrorDefinition(
        "INVALID_CREDENTIALS",
        "Invalid credentials",
        status.HTTP_401_UNAUTHORIZED,
    )
    USER_INACTIVE = ErrorDefinition(
        "USER_INACTIVE",
        "User is inactive",
        status.HTTP_403_FORBIDDEN,
    )
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    TENANT_NOT_FOUND = ErrorDefinition(
        "TENANT_NOT_FOUND",
        "Store not found or inactive",
        status.HTTP_404_NOT_FOUND,
    )
    TENANT_CONNECTION_FAILED = ErrorDefinition(
        "TENANT_CONNECTION_FAILED",
        "Store database unavailable",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    PERMISSION_CONFIGURATION_ERROR = ErrorDefinition(
        "PERMISSION_CONFIGURATION_ERROR",
        "Route permission is not recognized by the policy table",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    NOT_FOUND = ErrorDefinition("NOT_FOUND", "Resource not found", status.HTTP_404_NOT_FOUND)
    CONFLICT = ErrorDefinition("CONFLICT", "Resource already exists", status.HTTP_409_CONFLICT)
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    default_error: ErrorDefinition = ErrorCatalog.INTERNAL_ERROR

    def __init__(self, error: ErrorDefinition | None = None, details: object | None = None):
        self.error = error or self.default_error
        self.details = details
        super().__init__(self.error.message)


class InvalidTokenError(AppError):
    default_error = ErrorCatalog.INVALID_TOKEN


class TokenExpiredError(InvalidTokenError):
    default_error = ErrorCatalog.TOKEN_EXPIRED


class AuthorizationError(AppError):
    default_error = ErrorCatalog.PERMISSION_DENIED


class TenantResolutionError(AppError):
    """Unknown store (caller mistake) or unreachable store database (infrastructure)."""


class TenantNotFoundError(TenantResolutionError):
    default_error = ErrorCatalog.TENANT_NOT_FOUND


class TenantConnectionError(TenantResolutionError):
    default_error = ErrorCatalog.TENANT_CONNECTION_FAILED


class PermissionConfigurationError(AppError):
    default_error = ErrorCatalog.PERMISSION_CONFIGURATION_ERROR

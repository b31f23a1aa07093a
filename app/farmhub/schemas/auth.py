from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class LoginRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "email": "owner@example.com",
                    "password": "Sup3rSecret",
                },
                {
                    "username_or_email": "owner",
                    "password": "Sup3rSecret",
                },
            ]
        }
    }

    email: EmailStr | None = None
    username_or_email: str | None = None
    password: str

    @model_validator(mode="after")
    def ensure_identifier(self):
        if not self.email and not self.username_or_email:
            raise ValueError("email or username_or_email is required")
        return self


class TokenResponse(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "access_token": "<jwt>",
                "refresh_token": "<jwt>",
                "token_type": "bearer",
                "expires_in": 3600,
                "trace_id": "trace-123",
            }
        }
    }

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int
    trace_id: str


class OAuth2TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "username": "cashier01",
                "email": "cashier01@example.com",
                "password": "Sup3rSecret",
                "full_name": "Front Cashier",
            }
        }
    }

    username: str = Field(min_length=3, max_length=150)
    email: EmailStr
    # bcrypt only hashes the first 72 bytes.
    password: str = Field(min_length=8, max_length=72)
    full_name: str | None = Field(default=None, max_length=255)


class RegisteredUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    full_name: str | None = None
    role: str
    is_active: bool


class RegisterResponse(BaseModel):
    user: RegisteredUser
    trace_id: str

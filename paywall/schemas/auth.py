"""Request/response schemas for auth endpoints and token payloads."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from paywall.core.security import (
    EMAIL_MAX_LEN,
    FULL_NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)


def _normalize_email(v: str) -> str:
    email = v.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or "." not in domain:
        raise ValueError("Invalid email address")
    return email


class SignUpRequest(BaseModel):
    """New account details."""

    email: str = Field(..., max_length=EMAIL_MAX_LEN, description="Email address")
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )
    full_name: str = Field(..., min_length=1, max_length=FULL_NAME_MAX_LEN)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("full_name must not be blank")
        return v.strip()


class SignInRequest(BaseModel):
    """Credentials for sign-in. Lengths are not checked so every failure reads the same."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        return v.strip().lower()


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, description="Refresh token from sign-in")


class UserView(BaseModel):
    """Public view of a user (no password or token hash)."""

    id: int
    email: str
    full_name: str
    role: str

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Token pair plus the authenticated user."""

    access_token: str = Field(..., description="Short-lived JWT for the Authorization header")
    refresh_token: str = Field(..., description="Long-lived JWT for POST /auth/refresh")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserView


class TokenPayload(BaseModel):
    """Decoded claims of an access or refresh token."""

    sub: str
    email: str
    full_name: str
    role: str
    type: str
    jti: str
    iat: int
    exp: int

    @property
    def user_id(self) -> int:
        return int(self.sub)


class UsersListResponse(BaseModel):
    """Response for GET /admin/users (admin only)."""

    users: list[UserView]

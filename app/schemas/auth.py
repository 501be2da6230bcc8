"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.core.security import EMAIL_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from app.schemas.base import CamelModel


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(
        ...,
        min_length=3,
        max_length=EMAIL_MAX_LEN,
        pattern=r"^[^@\s]+@[^@\s]+$",
        description="User email address (matched case-sensitively)",
    )
    password: str = Field(
        ...,
        min_length=PASSWORD_MIN_LEN,
        max_length=PASSWORD_MAX_LEN,
        description="Password",
    )


class UserPublic(CamelModel):
    """User profile returned to clients. Never carries the password hash."""

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None


class LoginResponse(CamelModel):
    """Body of POST /auth/login; the refresh token travels only in the cookie."""

    user: UserPublic
    access_token: str = Field(..., description="JWT access token")


class RefreshResponse(CamelModel):
    """Body of POST /auth/refresh."""

    access_token: str = Field(..., description="New JWT access token")


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class LogoutAllResponse(BaseModel):
    """Response for POST /auth/logout-all."""

    message: str
    revoked: int = Field(..., ge=0, description="Number of refresh tokens revoked")


class MeResponse(BaseModel):
    """Response for GET /auth/me."""

    user: UserPublic


class CurrentUser(BaseModel):
    """Authenticated principal (id, email, role) threaded through request handlers."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    email: str
    role: str

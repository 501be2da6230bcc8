"""Pydantic request/response schemas."""

from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    LoginResponse,
    LogoutAllResponse,
    MeResponse,
    MessageResponse,
    RefreshResponse,
    UserPublic,
)
from app.schemas.bulk_upload import (
    BatchHistory,
    BulkUploadEnvelope,
    BulkUploadResult,
    BulkUploadRowError,
    UploaderSummary,
)
from app.schemas.health import HealthResponse

__all__ = [
    "BatchHistory",
    "BulkUploadEnvelope",
    "BulkUploadResult",
    "BulkUploadRowError",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "LogoutAllResponse",
    "MeResponse",
    "MessageResponse",
    "RefreshResponse",
    "UploaderSummary",
    "UserPublic",
]

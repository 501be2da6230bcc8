"""SQLAlchemy ORM models."""

from app.models.account import Account
from app.models.base import Base
from app.models.refresh_token import RefreshToken
from app.models.upload_batch import UploadBatch
from app.models.user import User

__all__ = ["Account", "Base", "RefreshToken", "UploadBatch", "User"]

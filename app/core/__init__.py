"""Core app configuration, database sessions, logging and security primitives."""

from app.core.config import Settings, get_settings, settings
from app.core.database import get_db
from app.core.logging import configure_logging

__all__ = ["Settings", "configure_logging", "get_db", "get_settings", "settings"]

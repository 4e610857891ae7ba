"""Core app configuration, database and security helpers."""

from paywall.core.config import get_settings, settings
from paywall.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]

"""Application database adapters."""

from osmora.adapters.db.app_db import AppDatabase

__all__ = ["AppDatabase"]

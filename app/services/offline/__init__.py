"""Offline services."""

from app.services.offline.sync import OfflineSync

__all__ = ["OfflineSync"]

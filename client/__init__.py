"""Client package for ShiftSync.

Provides the local client layer and the sync service that reconciles it with the spreadsheet endpoint.
"""
from .sync_service import SyncService, get_sync_service
from .timeclock_client import TimeClockClient, get_client

__all__ = ["get_client", "TimeClockClient", "get_sync_service", "SyncService"]

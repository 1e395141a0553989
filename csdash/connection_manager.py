"""Connection Manager to persist the dashboard's spreadsheet connection."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from fastapi import HTTPException, Request

from csdash.date_utils import format_datetime_utc, now_utc
from csdash.models import ConnectionSettings, SyncResponse

logger = logging.getLogger("csdash")

RefreshListener = Callable[[SyncResponse], Awaitable[None] | None]


class ConnectionManager:
    """Holds the saved viewable link and fans out refresh notifications."""

    def __init__(self, storage_path: Path):
        self.storage_path = storage_path
        self._settings = ConnectionSettings()
        self._listeners: list[RefreshListener] = []
        self._load()

    def _load(self):
        """Load settings from JSON storage."""
        if not self.storage_path.exists():
            return

        try:
            content = self.storage_path.read_text()
            if not content.strip():
                return
            self._settings = ConnectionSettings(**json.loads(content))
        except (OSError, ValueError, TypeError) as e:
            logger.error("Failed to load connection settings file: %s", e)

    def _save(self):
        self.storage_path.write_text(json.dumps(self._settings.model_dump(), indent=2))

    def get_settings(self) -> ConnectionSettings:
        return self._settings

    def save_settings(self, settings: ConnectionSettings) -> ConnectionSettings:
        self._settings = settings
        self._save()
        logger.info("Saved connection settings (connected=%s)", settings.connected)
        return self._settings

    def reset(self) -> ConnectionSettings:
        self._settings = ConnectionSettings()
        if self.storage_path.exists():
            self.storage_path.unlink()
        logger.info("Connection settings reset")
        return self._settings

    def mark_synced(self, viewable_link: Optional[str] = None) -> ConnectionSettings:
        """Record a successful sync; the link is saved when one is given."""
        updated = self._settings.model_copy(
            update={
                "viewableLink": viewable_link or self._settings.viewableLink,
                "connected": True,
                "lastSync": format_datetime_utc(now_utc()),
            }
        )
        return self.save_settings(updated)

    # ── Refresh notifications ──────────────────────────────────────

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        """Register a refresh listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def notify_refresh(self, result: SyncResponse) -> int:
        """Call every listener with the sync result; returns how many ran cleanly."""
        delivered = 0
        for listener in list(self._listeners):
            try:
                outcome = listener(result)
                if outcome is not None:
                    await outcome
                delivered += 1
            except Exception:
                logger.exception("Refresh listener failed")
        return delivered


def get_connection_manager(request: Request) -> ConnectionManager:
    manager = getattr(request.app.state, "connection_manager", None)
    if not manager:
        raise HTTPException(status_code=503, detail="Connection store not initialized")
    return manager

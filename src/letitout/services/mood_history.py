"""Mood history: reconcile backend logs into the local store by date."""

from __future__ import annotations

import logging
from datetime import timedelta

from letitout.core.errors import (
    IdentityUnavailable,
    LetItOutError,
    RemoteRejected,
    RemoteUnavailable,
    StorageUnavailable,
)
from letitout.core.settings import settings
from letitout.db.time import sort_key, utcnow
from letitout.models import MoodLog
from letitout.repositories.local_store import LocalStore
from letitout.schemas.remote import RemoteMoodLog
from letitout.services.gateway import RemoteGateway
from letitout.services.identity import IdentityProvider
from letitout.services.publisher import ENTITY_MOOD_LOG

logger = logging.getLogger(__name__)


def history_window(days: int) -> tuple[str, str]:
    """Return the inclusive ``(start, end)`` date keys ending today."""
    today = utcnow().date()
    start = today - timedelta(days=max(days, 1) - 1)
    return start.isoformat(), today.isoformat()


class MoodHistoryService:
    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        identity: IdentityProvider,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._identity = identity

    async def load_mood_history(self, days: int | None = None) -> list[MoodLog | RemoteMoodLog]:
        """Return the logs in the window, oldest first.

        Backend logs are merged into the store first (update by date, else
        create). A log that fails to merge is skipped. If the store cannot be
        read afterwards the backend logs are returned as they are.

        Raises:
            StorageUnavailable: If neither source produced any data.
        """
        start, end = history_window(days or settings.mood_history_days)
        remote = await self._fetch_remote(start, end)
        if remote:
            pending = await self._pending_dates()
            for log in remote:
                if log.date in pending:
                    # The queued local write is newer than what the backend holds.
                    continue
                await self._reconcile(log)

        try:
            return await self._store.get_mood_logs_by_date_range(start, end)
        except StorageUnavailable:
            if remote:
                logger.warning("Local mood history unavailable; returning backend logs")
                return sorted(remote, key=lambda log: sort_key(log.date))
            raise

    async def _fetch_remote(self, start: str, end: str) -> list[RemoteMoodLog]:
        try:
            device_id = await self._identity.get_device_id()
        except IdentityUnavailable as exc:
            logger.warning("Skipping backend mood history without identity: %s", exc)
            return []
        try:
            return await self._gateway.get_mood_logs(device_id, start, end)
        except (RemoteUnavailable, RemoteRejected) as exc:
            logger.info("Backend mood history unavailable, using local logs: %s", exc)
            return []

    async def _reconcile(self, log: RemoteMoodLog) -> None:
        try:
            await self._store.upsert_mood_log(log.date, log.mood_level, log.note)
        except LetItOutError as exc:
            logger.warning("Skipping backend mood log for %s: %s", log.date, exc)

    async def _pending_dates(self) -> set[str]:
        try:
            actions = await self._store.get_pending_actions()
        except StorageUnavailable as exc:
            logger.warning("Could not read queued mood logs: %s", exc)
            return set()
        return {
            str(action.payload.get("body", {}).get("date"))
            for action in actions
            if action.entity_type == ENTITY_MOOD_LOG
        }

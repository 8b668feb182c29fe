"""Sync engine: the single entry point the presentation layer talks to."""

from __future__ import annotations

import asyncio
import logging

from letitout.core.errors import StorageUnavailable
from letitout.core.settings import settings
from letitout.core.validation import check_handle
from letitout.models import MoodLog, Report, Room, Vent
from letitout.repositories.local_store import LocalStore
from letitout.schemas.remote import RemoteMoodLog
from letitout.services.connectivity import ConnectivityMonitor, ConnectivityState
from letitout.services.feed import FeedAssembler, FeedResult
from letitout.services.gateway import RemoteGateway
from letitout.services.identity import IdentityProvider
from letitout.services.mood_history import MoodHistoryService
from letitout.services.outbound import FlushReport, OutboundReplayer, OutboundSyncWorker
from letitout.services.publisher import (
    CommentView,
    PublishOutcome,
    Publisher,
    ReactionSummary,
)
from letitout.services.rooms import RoomDirectory, RoomSnapshot
from letitout.services.seed import SeedContentProvider

logger = logging.getLogger(__name__)


class SyncEngine:
    """Composes the local store, backend gateway and sync services.

    ``start`` probes connectivity, flushes the offline queue and starts the
    background worker; an OFFLINE -> ONLINE transition schedules another flush.
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        *,
        identity: IdentityProvider | None = None,
        seeder: SeedContentProvider | None = None,
        run_worker: bool = True,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.identity = identity or IdentityProvider(store)
        self.connectivity = ConnectivityMonitor(gateway)
        self.rooms = RoomDirectory(store, gateway)
        if seeder is None and settings.seed_enabled:
            seeder = SeedContentProvider(store, settings.seed_vent_count)
        self.feed = FeedAssembler(store, gateway, self.identity, self.rooms, seeder)
        self.publisher = Publisher(store, gateway, self.identity, self.rooms, self.connectivity)
        self.mood_history = MoodHistoryService(store, gateway, self.identity)
        self.replayer = OutboundReplayer(store, gateway, self.identity, self.connectivity)
        self.worker = OutboundSyncWorker(self.replayer, self.connectivity) if run_worker else None
        self._flush_tasks: set[asyncio.Task[FlushReport | None]] = set()
        self.connectivity.subscribe(self._on_connectivity_change)

    async def start(self) -> None:
        """Probe the backend, replay anything queued and start the worker."""
        try:
            self.gateway.device_id = await self.identity.get_device_id()
        except StorageUnavailable as exc:
            logger.warning("Starting without device identity: %s", exc)
        await self.connectivity.probe()
        await self._flush_quietly()
        if self.worker is not None:
            await self.worker.start()

    async def stop(self) -> None:
        if self.worker is not None:
            await self.worker.stop()
        if self._flush_tasks:
            await asyncio.gather(*self._flush_tasks, return_exceptions=True)
        await self.gateway.close()

    def _on_connectivity_change(
        self,
        previous: ConnectivityState,
        current: ConnectivityState,
    ) -> None:
        if previous is ConnectivityState.OFFLINE and current is ConnectivityState.ONLINE:
            task = asyncio.create_task(self._flush_quietly())
            self._flush_tasks.add(task)
            task.add_done_callback(self._flush_tasks.discard)

    async def _flush_quietly(self) -> FlushReport | None:
        try:
            return await self.replayer.flush()
        except StorageUnavailable as exc:
            logger.warning("Queue flush skipped, local store unavailable: %s", exc)
            return None

    # ----------------------------------------------------------------- reads

    async def load_feed(self, room: str | None = None) -> FeedResult:
        return await self.feed.load_feed(room)

    async def load_mood_history(self, days: int | None = None) -> list[MoodLog | RemoteMoodLog]:
        return await self.mood_history.load_mood_history(days)

    async def load_comments(self, vent_id: str) -> list[CommentView]:
        return await self.publisher.load_comments(vent_id)

    async def load_reactions(self, vent_id: str) -> ReactionSummary:
        return await self.publisher.load_reactions(vent_id)

    async def list_rooms(self) -> RoomSnapshot:
        return await self.rooms.merged_room_map()

    async def list_drafts(self) -> list[Vent]:
        return await self.store.get_drafts()

    # ---------------------------------------------------------------- writes

    async def publish_draft(self, vent_id: str) -> PublishOutcome:
        return await self.publisher.publish_draft(vent_id)

    async def compose_vent(self, text: str, **options) -> PublishOutcome:
        return await self.publisher.compose_vent(text, **options)

    async def add_comment(self, vent_id: str, text: str) -> PublishOutcome:
        return await self.publisher.add_comment(vent_id, text)

    async def log_mood(
        self,
        mood_level: str,
        note: str | None = None,
        *,
        date: str | None = None,
    ) -> tuple[MoodLog, PublishOutcome]:
        return await self.publisher.log_mood(mood_level, note, date=date)

    async def toggle_reaction(
        self, vent_id: str, reaction_type: str
    ) -> tuple[bool, PublishOutcome]:
        return await self.publisher.toggle_reaction(vent_id, reaction_type)

    async def report_vent(
        self,
        vent_id: str,
        reason: str,
        description: str | None = None,
    ) -> tuple[Report, PublishOutcome]:
        return await self.publisher.report_vent(vent_id, reason, description)

    async def create_room(self, name: str, description: str | None = None) -> Room:
        return await self.store.create_room(name.strip(), description)

    async def flush(self) -> FlushReport:
        """Probe connectivity and replay the queue now."""
        await self.connectivity.probe()
        return await self.replayer.flush()

    # ------------------------------------------------------------ moderation

    async def hide_post(self, vent_id: str) -> None:
        await self.store.hide_post(vent_id)

    async def unhide_post(self, vent_id: str) -> bool:
        return await self.store.unhide_post(vent_id)

    async def block_user(self, handle: str) -> None:
        await self.store.block_user(check_handle(handle))

    async def unblock_user(self, handle: str) -> bool:
        return await self.store.unblock_user(check_handle(handle))

    # ----------------------------------------------------------- destructive

    async def delete_vent(self, vent_id: str) -> bool:
        return await self.store.delete_vent(vent_id)

    async def clear_drafts(self) -> int:
        return await self.store.delete_drafts()

    async def clear_all(self) -> None:
        """Erase all content and queued work on this device; identity is kept."""
        await self.store.clear_all()

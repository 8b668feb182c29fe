"""Feed assembly: remote first, local fallback, first-run seed, explicit empty state."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from letitout.core.errors import (
    IdentityUnavailable,
    RemoteRejected,
    RemoteUnavailable,
    StorageUnavailable,
)
from letitout.core.settings import settings
from letitout.db.time import as_utc, sort_key
from letitout.models import Vent
from letitout.models.device_state import SEEDED_KEY
from letitout.repositories.local_store import LocalStore
from letitout.schemas.remote import RemoteVent
from letitout.services.gateway import RemoteGateway
from letitout.services.identity import IdentityProvider
from letitout.services.moderation import ModerationFilter
from letitout.services.rooms import FALLBACK_ROOM_NAME, RoomDirectory, RoomSnapshot
from letitout.services.seed import SeedContentProvider

logger = logging.getLogger(__name__)


class FeedSource(Enum):
    REMOTE = "remote"
    LOCAL = "local"
    SEED = "seed"
    EMPTY = "empty"


@dataclass(frozen=True)
class FeedVent:
    """A displayable vent, independent of where it was loaded from."""

    id: str
    room_id: str | None
    room_name: str
    text: str
    anonymous_handle: str
    mood_before: int
    mood_after: int
    created_at: datetime
    reflection: str | None = None
    remote_id: str | None = None
    is_local: bool = False

    @classmethod
    def from_remote(
        cls,
        vent: RemoteVent,
        rooms: RoomSnapshot | None,
        reflections: dict[str, str],
    ) -> FeedVent:
        room_id = vent.room_id or (vent.room.id if vent.room else None)
        if vent.room and vent.room.name:
            name = vent.room.name
            if rooms is None:
                room_name = name
            elif vent.room.id:
                # An embedded {id, name} room is displayable even when no catalog lists it.
                room_name = rooms.names.get(name, name)
            else:
                room_name = rooms.label(name)
        elif rooms is not None:
            room_name = rooms.label(room_id)
        else:
            room_name = FALLBACK_ROOM_NAME
        return cls(
            id=vent.id,
            room_id=room_id,
            room_name=room_name,
            text=vent.text,
            anonymous_handle=vent.anonymous_handle,
            mood_before=vent.mood_before,
            mood_after=vent.mood_after,
            created_at=vent.created_at,
            reflection=vent.reflection or reflections.get(vent.id),
            remote_id=vent.id,
        )

    @classmethod
    def from_local(
        cls,
        vent: Vent,
        rooms: RoomSnapshot,
        reflections: dict[str, str],
    ) -> FeedVent:
        return cls(
            id=vent.id,
            room_id=vent.room,
            room_name=rooms.label(vent.room),
            text=vent.text,
            anonymous_handle=vent.anonymous_handle,
            mood_before=vent.mood_before,
            mood_after=vent.mood_after,
            created_at=as_utc(vent.created_at),
            reflection=reflections.get(vent.id),
            remote_id=vent.remote_id,
            is_local=True,
        )


@dataclass
class FeedResult:
    vents: list[FeedVent] = field(default_factory=list)
    source: FeedSource = FeedSource.EMPTY


def newest_first(vents: list[FeedVent]) -> list[FeedVent]:
    """Order vents by numeric creation time, newest first, with a stable id tie-break."""
    return sorted(vents, key=lambda vent: (sort_key(vent.created_at), vent.id), reverse=True)


class FeedAssembler:
    """Builds one ordered, moderation-filtered feed from the available sources."""

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        identity: IdentityProvider,
        rooms: RoomDirectory,
        seeder: SeedContentProvider | None = None,
        *,
        limit: int | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._identity = identity
        self._rooms = rooms
        self._seeder = seeder
        self._limit = limit or settings.feed_limit
        self._first_load_checked = False

    async def load_feed(self, room: str | None = None) -> FeedResult:
        """Return the feed, optionally scoped to one room.

        Raises:
            StorageUnavailable: If the moderation lists cannot be read, or if
                both the remote and the local load failed.
        """
        first_load = await self._claim_first_load()
        device_id, moderation = await asyncio.gather(
            self._device_id(), ModerationFilter.load(self._store)
        )
        if device_id:
            self._gateway.device_id = device_id

        snapshot: RoomSnapshot | None = None
        if room is not None:
            snapshot = await self._snapshot_or_none()

        remote_failed = False
        try:
            remote = await self._load_remote(room, snapshot, moderation)
        except (RemoteUnavailable, RemoteRejected) as exc:
            logger.info("Remote feed unavailable, falling back to local store: %s", exc)
            remote_failed = True
        else:
            if remote:
                return FeedResult(remote, FeedSource.REMOTE)
            logger.info("Remote feed empty after filtering, falling back to local store")

        try:
            if snapshot is None:
                snapshot = await self._rooms.merged_room_map()
            local = await self._load_local(room, snapshot, moderation)
            if local:
                return FeedResult(local, FeedSource.LOCAL)

            if first_load and await self._seed(snapshot):
                local = await self._load_local(room, snapshot, moderation)
                if local:
                    return FeedResult(local, FeedSource.SEED)
        except StorageUnavailable:
            if remote_failed:
                logger.error("Feed load failed: remote and local store both unavailable")
                raise
            logger.warning("Local store unavailable; showing empty feed", exc_info=True)

        return FeedResult([], FeedSource.EMPTY)

    async def _device_id(self) -> str | None:
        try:
            return await self._identity.get_device_id()
        except IdentityUnavailable as exc:
            logger.warning("Loading feed without device identity: %s", exc)
            return None

    async def _snapshot_or_none(self) -> RoomSnapshot | None:
        try:
            return await self._rooms.merged_room_map()
        except StorageUnavailable as exc:
            logger.warning("Room directory unavailable: %s", exc)
            return None

    async def _load_remote(
        self,
        room: str | None,
        snapshot: RoomSnapshot | None,
        moderation: ModerationFilter,
    ) -> list[FeedVent]:
        room_id = None
        if room is not None:
            room_id = snapshot.remote_id(room) if snapshot else room
        page = await self._gateway.list_vents(limit=self._limit, room_id=room_id)
        visible = [vent for vent in page.vents if moderation.allows(vent)]
        if not visible:
            return []

        if snapshot is None:
            snapshot = await self._snapshot_or_none()
        try:
            reflections = await self._store.get_all_reflections()
        except StorageUnavailable as exc:
            logger.warning("Reflections unavailable for enrichment: %s", exc)
            reflections = {}
        return newest_first([FeedVent.from_remote(vent, snapshot, reflections) for vent in visible])

    async def _load_local(
        self,
        room: str | None,
        snapshot: RoomSnapshot,
        moderation: ModerationFilter,
    ) -> list[FeedVent]:
        refs = snapshot.refs_for(room) if room is not None else None
        vents = await self._store.get_public_vents(room_refs=refs)
        visible = [vent for vent in vents if moderation.allows(vent, vent.remote_id)]
        if not visible:
            return []
        reflections = await self._store.get_all_reflections()
        feed = newest_first([FeedVent.from_local(vent, snapshot, reflections) for vent in visible])
        return feed[: self._limit]

    async def _claim_first_load(self) -> bool:
        """Return True exactly once per install, on its first feed load."""
        if self._first_load_checked or self._seeder is None:
            return False
        token = uuid.uuid4().hex
        try:
            stored = await self._store.set_setting_if_absent(SEEDED_KEY, token)
        except StorageUnavailable as exc:
            logger.warning("Could not record first feed load: %s", exc)
            return False
        self._first_load_checked = True
        return stored == token

    async def _seed(self, snapshot: RoomSnapshot) -> bool:
        if self._seeder is None:
            return False
        # Only a store with no vents at all, drafts included, counts as a fresh install.
        if await self._store.get_all_vents():
            return False
        return await self._seeder.seed(snapshot) > 0

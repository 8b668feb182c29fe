"""Room directory merging the backend catalog with rooms created on the device."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from letitout.core.errors import RemoteRejected, RemoteUnavailable
from letitout.repositories.local_store import LocalStore
from letitout.services.gateway import RemoteGateway

logger = logging.getLogger(__name__)

FALLBACK_ROOM_NAME = "General"


@dataclass(frozen=True)
class RoomEntry:
    id: str
    name: str
    description: str | None = None
    local: bool = False


# Bundled catalog used when the backend listing cannot be fetched.
DEFAULT_ROOMS: tuple[RoomEntry, ...] = (
    RoomEntry("default-work", "Work Frustrations", "Share your workplace challenges"),
    RoomEntry("default-relationships", "Relationships", "Navigate relationship difficulties"),
    RoomEntry("default-anxiety", "Anxiety & Worry", "Express your anxieties"),
    RoomEntry("default-stress", "Stress Relief", "Let go of daily stress"),
    RoomEntry("default-family", "Family Matters", "Family-related concerns"),
    RoomEntry("default-loneliness", "Loneliness", "Feelings of isolation"),
    RoomEntry("default-grief", "Grief & Loss", "Processing loss and grief"),
    RoomEntry("default-anger", "Anger", "Managing anger and frustration"),
)


def room_ref_key(ref: object) -> str | None:
    """Reduce a room reference (id, bare name or ``{id, name}`` mapping) to a string."""
    if ref is None:
        return None
    if isinstance(ref, dict):
        value = ref.get("id") or ref.get("name")
        return str(value) if value else None
    text = str(ref).strip()
    return text or None


@dataclass
class RoomSnapshot:
    """Point-in-time view of every known room.

    ``names`` maps both ids and names to the display name. Service rooms are
    inserted first so a local room with a clashing id never shadows them.
    """

    rooms: list[RoomEntry] = field(default_factory=list)
    names: dict[str, str] = field(default_factory=dict)
    _service_ids_by_name: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, service: list[RoomEntry], local: list[RoomEntry]) -> RoomSnapshot:
        snapshot = cls()
        for entry in service:
            snapshot._add(entry)
            snapshot._service_ids_by_name.setdefault(entry.name, entry.id)
        for entry in local:
            snapshot._add(entry)
        return snapshot

    def _add(self, entry: RoomEntry) -> None:
        self.rooms.append(entry)
        self.names.setdefault(entry.id, entry.name)
        self.names.setdefault(entry.name, entry.name)

    def label(self, ref: object) -> str:
        """Return the display name for a reference; unknown references map to General."""
        if isinstance(ref, dict) and ref.get("name"):
            return self.names.get(str(ref["name"]), str(ref["name"]))
        key = room_ref_key(ref)
        if key is None:
            return FALLBACK_ROOM_NAME
        return self.names.get(key, FALLBACK_ROOM_NAME)

    def remote_id(self, ref: object) -> str | None:
        """Return the backend room id for a reference, or the raw reference."""
        key = room_ref_key(ref)
        if key is None:
            return None
        name = self.names.get(key)
        if name is not None and name in self._service_ids_by_name:
            return self._service_ids_by_name[name]
        return key

    def refs_for(self, ref: object) -> set[str]:
        """Return every id and name that resolves to the same room as ``ref``."""
        name = self.label(ref)
        refs = {name}
        refs.update(key for key, value in self.names.items() if value == name)
        return refs


class RoomDirectory:
    """Builds :class:`RoomSnapshot` objects from the backend and local store."""

    def __init__(self, store: LocalStore, gateway: RemoteGateway) -> None:
        self._store = store
        self._gateway = gateway

    async def service_rooms(self) -> list[RoomEntry]:
        """Return the backend catalog, or the bundled defaults when unreachable."""
        try:
            remote = await self._gateway.list_rooms()
        except (RemoteUnavailable, RemoteRejected) as exc:
            logger.info("Using bundled room catalog: %s", exc)
            return list(DEFAULT_ROOMS)
        if not remote:
            return list(DEFAULT_ROOMS)
        return [RoomEntry(room.id, room.name, room.description) for room in remote]

    async def merged_room_map(self) -> RoomSnapshot:
        """Return a snapshot of service rooms followed by local rooms.

        Raises:
            StorageUnavailable: If local rooms cannot be read.
        """
        service = await self.service_rooms()
        local = [
            RoomEntry(room.id, room.name, room.description, local=True)
            for room in await self._store.get_all_rooms()
        ]
        return RoomSnapshot.build(service, local)

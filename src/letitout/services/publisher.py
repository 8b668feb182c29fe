"""Write path: commit locally, then push to the backend or queue for replay."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from letitout.core.errors import (
    IdentityUnavailable,
    NotADraft,
    RemoteRejected,
    RemoteUnavailable,
    StorageUnavailable,
)
from letitout.core.validation import (
    MAX_COMMENT_LENGTH,
    MAX_REPORT_DESCRIPTION_LENGTH,
    check_date_key,
    check_mood,
    check_mood_level,
    check_reaction_type,
    check_report_reason,
    clean_text,
)
from letitout.db.time import as_utc, today_key
from letitout.models import Comment, MoodLog, Report, Vent
from letitout.models.reaction import REACTION_TYPES
from letitout.models.vent import DEFAULT_MOOD
from letitout.repositories.local_store import LocalStore
from letitout.services.connectivity import ConnectivityMonitor
from letitout.services.gateway import RemoteGateway
from letitout.services.identity import IdentityProvider
from letitout.services.moderation import ModerationFilter
from letitout.services.rooms import RoomDirectory

logger = logging.getLogger(__name__)

ENTITY_VENT = "vent"
ENTITY_COMMENT = "comment"
ENTITY_MOOD_LOG = "mood_log"
ENTITY_REACTION = "reaction"
ENTITY_REPORT = "report"
OP_CREATE = "create"
OP_UPSERT = "upsert"
OP_TOGGLE = "toggle"


class SyncStatus(Enum):
    SYNCED = "synced"
    QUEUED = "queued"
    LOCAL_ONLY = "local_only"
    DRAFT = "draft"
    ALREADY_PUBLISHED = "already_published"


_STATUS_MESSAGES = {
    SyncStatus.SYNCED: "Shared",
    SyncStatus.QUEUED: "Saved locally, will sync later",
    SyncStatus.LOCAL_ONLY: "Saved locally, will sync later",
    SyncStatus.DRAFT: "Saved to drafts",
    SyncStatus.ALREADY_PUBLISHED: "Already shared",
}


@dataclass(frozen=True)
class PublishOutcome:
    """Result of a local-first write. The local commit has always succeeded."""

    entity_id: str
    status: SyncStatus
    remote_id: str | None = None

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self.status]


@dataclass(frozen=True)
class CommentView:
    id: str
    vent_id: str
    text: str
    anonymous_handle: str
    created_at: datetime
    is_local: bool = False


@dataclass(frozen=True)
class ReactionSummary:
    """Reaction counts for one vent and the types this device has active."""

    vent_id: str
    counts: dict[str, int]
    mine: frozenset[str]
    is_local: bool = False


def vent_body(vent: Vent, *, room_id: str | None, device_id: str | None) -> dict[str, Any]:
    """Build the ``POST /vents`` body for a local vent."""
    body: dict[str, Any] = {
        "text": vent.text,
        "anonymousHandle": vent.anonymous_handle,
        "deviceId": device_id,
        "moodBefore": vent.mood_before,
        "moodAfter": vent.mood_after,
        "generateReflection": True,
    }
    if room_id:
        body["roomId"] = room_id
    return body


class Publisher:
    """Local-first writes for vents, comments, reactions, reports and mood logs.

    Every operation commits to the local store first. Remote propagation
    happens afterwards and its failure is recorded by queueing, never raised.
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        identity: IdentityProvider,
        rooms: RoomDirectory,
        connectivity: ConnectivityMonitor,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._identity = identity
        self._rooms = rooms
        self._connectivity = connectivity

    # ------------------------------------------------------------------ vents

    async def publish_draft(self, vent_id: str) -> PublishOutcome:
        """Publish a draft; publishing an already published vent is a no-op.

        Raises:
            NotFound: If no vent has this id. Nothing changes in that case.
            StorageUnavailable: If the local transition itself failed.
        """
        try:
            vent = await self._store.publish_draft(vent_id)
        except NotADraft:
            logger.info("Vent %s already published; nothing to do", vent_id)
            return PublishOutcome(vent_id, SyncStatus.ALREADY_PUBLISHED)
        return await self._propagate_vent(vent)

    async def compose_vent(
        self,
        text: str,
        *,
        room: str | None = None,
        mood_before: int = DEFAULT_MOOD,
        mood_after: int = DEFAULT_MOOD,
        as_draft: bool = False,
    ) -> PublishOutcome:
        """Create a vent locally; unless it is a draft, publish it right away.

        Raises:
            ValidationFailure: If text or moods are invalid.
            StorageUnavailable: If the vent could not be stored.
        """
        cleaned = clean_text(text)
        check_mood(mood_before, field="mood_before")
        check_mood(mood_after, field="mood_after")
        handle = await self._identity.get_handle()
        device_id = await self._identity.get_device_id()
        vent = await self._store.create_vent(
            text=cleaned,
            room=room,
            anonymous_handle=handle,
            device_id=device_id,
            mood_before=mood_before,
            mood_after=mood_after,
            is_draft=as_draft,
        )
        if as_draft:
            return PublishOutcome(vent.id, SyncStatus.DRAFT)
        return await self._propagate_vent(vent)

    async def _propagate_vent(self, vent: Vent) -> PublishOutcome:
        room_id = await self._remote_room_id(vent.room)
        device_id = vent.device_id or await self._device_id_or_none()
        body = vent_body(vent, room_id=room_id, device_id=device_id)

        if device_id and await self._can_push_directly():
            try:
                remote = await self._gateway.create_vent(body)
            except (RemoteUnavailable, RemoteRejected) as exc:
                logger.info("Direct publish of %s failed, queueing: %s", vent.id, exc)
            else:
                await self._record_remote_vent(vent.id, remote.id, remote.reflection)
                return PublishOutcome(vent.id, SyncStatus.SYNCED, remote.id)

        return await self._enqueue(
            vent.id, ENTITY_VENT, OP_CREATE, {"local_id": vent.id, "body": body}
        )

    async def _record_remote_vent(
        self,
        vent_id: str,
        remote_id: str,
        reflection: str | None,
    ) -> None:
        try:
            await self._store.mark_vent_synced(vent_id, remote_id)
            if reflection:
                await self._store.attach_reflection(vent_id, reflection)
        except StorageUnavailable:
            logger.error("Vent %s reached the backend as %s but could not be marked synced",
                         vent_id, remote_id, exc_info=True)

    async def _remote_room_id(self, ref: str | None) -> str | None:
        if ref is None:
            return None
        try:
            snapshot = await self._rooms.merged_room_map()
        except StorageUnavailable as exc:
            logger.warning("Room directory unavailable, sending raw room reference: %s", exc)
            return ref
        return snapshot.remote_id(ref)

    async def _device_id_or_none(self) -> str | None:
        try:
            return await self._identity.get_device_id()
        except IdentityUnavailable as exc:
            logger.warning("Device identity unavailable; it will be resolved on replay: %s", exc)
            return None

    async def _can_push_directly(self) -> bool:
        """Return True when a write may skip the queue.

        Anything still pending must reach the backend first, otherwise a newer
        direct write could be overwritten by an older queued one on replay.
        """
        if not self._connectivity.is_online:
            return False
        try:
            pending = await self._store.count_pending_actions()
        except StorageUnavailable as exc:
            logger.warning("Could not inspect the outbound queue, queueing: %s", exc)
            return False
        return pending == 0

    async def _enqueue(
        self,
        entity_id: str,
        entity_type: str,
        operation: str,
        payload: dict[str, Any],
    ) -> PublishOutcome:
        try:
            await self._store.enqueue_action(entity_type, operation, payload)
        except StorageUnavailable:
            logger.error("Could not queue %s/%s for %s; it exists locally only",
                         entity_type, operation, entity_id, exc_info=True)
            return PublishOutcome(entity_id, SyncStatus.LOCAL_ONLY)
        return PublishOutcome(entity_id, SyncStatus.QUEUED)

    # --------------------------------------------------------------- comments

    async def add_comment(self, vent_id: str, text: str) -> PublishOutcome:
        """Store a comment locally, then push it or queue it.

        ``vent_id`` may be a local vent id or a backend vent id.
        """
        cleaned = clean_text(text, field="comment", max_length=MAX_COMMENT_LENGTH)
        handle = await self._identity.get_handle()
        device_id = await self._identity.get_device_id()
        comment = await self._store.create_comment(
            vent_id=vent_id, text=cleaned, anonymous_handle=handle
        )

        local_vent, target = await self._vent_target(vent_id)
        body = {
            "ventId": target,
            "text": cleaned,
            "anonymousHandle": handle,
            "deviceId": device_id,
        }

        if target and await self._can_push_directly():
            try:
                remote = await self._gateway.create_comment(body)
            except (RemoteUnavailable, RemoteRejected) as exc:
                logger.info("Direct comment on %s failed, queueing: %s", vent_id, exc)
            else:
                return PublishOutcome(comment.id, SyncStatus.SYNCED, remote.id)

        payload = {
            "local_vent_id": local_vent.id if local_vent is not None else None,
            "body": body,
        }
        return await self._enqueue(comment.id, ENTITY_COMMENT, OP_CREATE, payload)

    async def load_comments(self, vent_id: str) -> list[CommentView]:
        """Return comments for a vent, oldest first, without blocked authors."""
        moderation = await ModerationFilter.load(self._store)
        _, target = await self._vent_target(vent_id)

        if target:
            try:
                remote = await self._gateway.list_comments(target)
            except (RemoteUnavailable, RemoteRejected) as exc:
                logger.info("Remote comments unavailable for %s: %s", vent_id, exc)
            else:
                return [
                    CommentView(c.id, vent_id, c.text, c.anonymous_handle, c.created_at)
                    for c in moderation.apply(remote)
                ]

        local: list[Comment] = await self._store.get_comments_by_vent(vent_id)
        return [
            CommentView(
                c.id, c.vent_id, c.text, c.anonymous_handle, as_utc(c.created_at), is_local=True
            )
            for c in moderation.apply(local)
        ]

    # -------------------------------------------------------------- mood logs

    async def log_mood(
        self,
        mood_level: str,
        note: str | None = None,
        *,
        date: str | None = None,
    ) -> tuple[MoodLog, PublishOutcome]:
        """Record the mood for ``date`` (today by default), then push or queue it."""
        check_mood_level(mood_level)
        date = check_date_key(date) if date else today_key()
        note = (note or "").strip() or None
        log = await self._store.upsert_mood_log(date, mood_level, note)
        device_id = await self._device_id_or_none()
        body = {"deviceId": device_id, "date": date, "moodLevel": mood_level, "note": note}

        if device_id and await self._can_push_directly():
            try:
                remote = await self._gateway.save_mood_log(body)
            except (RemoteUnavailable, RemoteRejected) as exc:
                logger.info("Direct mood log for %s failed, queueing: %s", date, exc)
            else:
                return log, PublishOutcome(log.id, SyncStatus.SYNCED, remote.id)

        outcome = await self._enqueue(log.id, ENTITY_MOOD_LOG, OP_UPSERT, {"body": body})
        return log, outcome

    # -------------------------------------------------------------- reactions

    async def toggle_reaction(
        self, vent_id: str, reaction_type: str
    ) -> tuple[bool, PublishOutcome]:
        """Flip this device's reaction on a vent, then push the toggle or queue it.

        Returns whether the reaction is active after the toggle.
        """
        check_reaction_type(reaction_type)
        handle = await self._identity.get_handle()
        active = await self._store.toggle_reaction(vent_id, reaction_type, handle)
        device_id = await self._device_id_or_none()

        local_vent, target = await self._vent_target(vent_id)
        body = {
            "ventId": target,
            "type": reaction_type,
            "anonymousHandle": handle,
            "deviceId": device_id,
        }

        if target and device_id and await self._can_push_directly():
            try:
                remote = await self._gateway.toggle_reaction(body)
            except (RemoteUnavailable, RemoteRejected) as exc:
                logger.info("Direct reaction on %s failed, queueing: %s", vent_id, exc)
            else:
                remote_id = remote.id if remote is not None else None
                return active, PublishOutcome(vent_id, SyncStatus.SYNCED, remote_id)

        payload = {
            "local_vent_id": local_vent.id if local_vent is not None else None,
            "body": body,
        }
        return active, await self._enqueue(vent_id, ENTITY_REACTION, OP_TOGGLE, payload)

    async def load_reactions(self, vent_id: str) -> ReactionSummary:
        """Return reaction counts for a vent, from the backend when it answers."""
        handle = await self._identity.get_handle()
        _, target = await self._vent_target(vent_id)
        if target:
            try:
                remote = await self._gateway.list_reactions(target)
            except (RemoteUnavailable, RemoteRejected) as exc:
                logger.info("Remote reactions unavailable for %s: %s", vent_id, exc)
            else:
                return _summarize(vent_id, [(r.type, r.anonymous_handle) for r in remote], handle)

        local = await self._store.get_reactions_by_vent(vent_id)
        pairs = [(r.type, r.anonymous_handle) for r in local]
        return _summarize(vent_id, pairs, handle, is_local=True)

    # ---------------------------------------------------------------- reports

    async def report_vent(
        self,
        vent_id: str,
        reason: str,
        description: str | None = None,
    ) -> tuple[Report, PublishOutcome]:
        """Record a content report locally, then push it or queue it."""
        check_report_reason(reason)
        if description is not None and description.strip():
            description = clean_text(
                description, field="description", max_length=MAX_REPORT_DESCRIPTION_LENGTH
            )
        else:
            description = None
        handle = await self._identity.get_handle()
        report = await self._store.create_report(
            vent_id=vent_id, reason=reason, description=description, anonymous_handle=handle
        )
        device_id = await self._device_id_or_none()

        local_vent, target = await self._vent_target(vent_id)
        body = {
            "ventId": target,
            "reason": reason,
            "description": description,
            "deviceId": device_id,
        }

        if target and device_id and await self._can_push_directly():
            try:
                remote = await self._gateway.create_report(body)
            except (RemoteUnavailable, RemoteRejected) as exc:
                logger.info("Direct report on %s failed, queueing: %s", vent_id, exc)
            else:
                return report, PublishOutcome(report.id, SyncStatus.SYNCED, remote.id)

        payload = {
            "local_vent_id": local_vent.id if local_vent is not None else None,
            "body": body,
        }
        return report, await self._enqueue(report.id, ENTITY_REPORT, OP_CREATE, payload)

    async def _vent_target(self, vent_id: str) -> tuple[Vent | None, str | None]:
        """Return the local vent, if any, and the id the backend knows it by."""
        local_vent = await self._store.get_vent(vent_id)
        target = local_vent.remote_id if local_vent is not None else vent_id
        return local_vent, target


def _summarize(
    vent_id: str,
    reactions: list[tuple[str, str]],
    handle: str,
    *,
    is_local: bool = False,
) -> ReactionSummary:
    counts = dict.fromkeys(REACTION_TYPES, 0)
    mine: set[str] = set()
    for reaction_type, author in reactions:
        if reaction_type not in counts:
            continue
        counts[reaction_type] += 1
        if author == handle:
            mine.add(reaction_type)
    return ReactionSummary(vent_id, counts, frozenset(mine), is_local)

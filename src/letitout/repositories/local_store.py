"""Durable, query-capable persistence for everything the device keeps offline.

Every public method runs in its own session and transaction, so each call is
atomic on its own; callers must not assume that two calls see the same state.
Database failures surface as :class:`StorageUnavailable`.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from letitout.core.errors import NotADraft, NotFound, StorageUnavailable, ValidationFailure
from letitout.db.time import sort_key, utcnow
from letitout.models import (
    BlockedUser,
    Comment,
    DeviceState,
    HiddenPost,
    MoodLog,
    OfflineAction,
    Reaction,
    Reflection,
    Report,
    Room,
    Vent,
)
from letitout.models.offline_action import ACTION_STATUS_PENDING, ACTION_STATUS_REJECTED
from letitout.models.vent import DEFAULT_HANDLE, DEFAULT_MOOD
from letitout.core.validation import check_date_key, check_mood_level
from letitout.utils.hash import digest_json

__all__ = ["LocalStore"]

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


def _newest_first(vents: Iterable[Vent]) -> list[Vent]:
    return sorted(vents, key=lambda vent: sort_key(vent.created_at), reverse=True)


class LocalStore:
    """Async facade over the on-device SQLite database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store with a session factory bound to the local engine."""
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            logger.warning("Local store %s failed: %s", operation, exc)
            raise StorageUnavailable(f"local store {operation} failed") from exc

    # ------------------------------------------------------------------ vents

    async def get_all_vents(self) -> list[Vent]:
        """Return drafts and published vents, newest first."""
        async with self._transaction("get_all_vents") as session:
            result = await session.execute(select(Vent))
            return _newest_first(result.scalars())

    async def get_public_vents(self, room_refs: Iterable[str] | None = None) -> list[Vent]:
        """Return published vents, newest first, optionally limited to room references."""
        stmt = select(Vent).where(Vent.is_draft.is_(False))
        if room_refs is not None:
            stmt = stmt.where(Vent.room.in_(list(room_refs)))
        async with self._transaction("get_public_vents") as session:
            result = await session.execute(stmt)
            return _newest_first(result.scalars())

    async def get_drafts(self) -> list[Vent]:
        """Return unpublished drafts, newest first."""
        async with self._transaction("get_drafts") as session:
            result = await session.execute(select(Vent).where(Vent.is_draft.is_(True)))
            return _newest_first(result.scalars())

    async def get_vent(self, vent_id: str) -> Vent | None:
        """Return a vent by identifier, or None when it does not exist."""
        async with self._transaction("get_vent") as session:
            return await session.get(Vent, vent_id)

    async def create_vent(
        self,
        *,
        text: str,
        room: str | None = None,
        anonymous_handle: str = DEFAULT_HANDLE,
        device_id: str | None = None,
        mood_before: int = DEFAULT_MOOD,
        mood_after: int = DEFAULT_MOOD,
        is_draft: bool = False,
        vent_id: str | None = None,
        created_at: datetime | None = None,
    ) -> Vent:
        """Insert a vent and return the persisted row."""
        vent = Vent(
            id=vent_id or _new_id(),
            room=room,
            text=text,
            anonymous_handle=anonymous_handle or DEFAULT_HANDLE,
            device_id=device_id,
            mood_before=mood_before,
            mood_after=mood_after,
            is_draft=is_draft,
            created_at=created_at or utcnow(),
        )
        async with self._transaction("create_vent") as session:
            session.add(vent)
        return vent

    async def publish_draft(self, vent_id: str) -> Vent:
        """Flip a draft to published.

        The transition is a single conditional update, so two racing callers
        cannot both succeed.

        Raises:
            NotFound: If no vent has this id.
            NotADraft: If the vent is already published.
        """
        async with self._transaction("publish_draft") as session:
            result = await session.execute(
                update(Vent)
                .where(Vent.id == vent_id, Vent.is_draft.is_(True))
                .values(is_draft=False)
            )
            vent = await session.get(Vent, vent_id)
            if vent is None:
                raise NotFound("Draft", vent_id)
            if result.rowcount == 0:
                raise NotADraft(vent_id)
            await session.refresh(vent)
            return vent

    async def mark_vent_synced(self, vent_id: str, remote_id: str | None) -> bool:
        """Record that the backend confirmed the vent; returns False if it is gone."""
        async with self._transaction("mark_vent_synced") as session:
            vent = await session.get(Vent, vent_id)
            if vent is None:
                return False
            vent.remote_id = remote_id or vent.remote_id or vent_id
            return True

    async def delete_vent(self, vent_id: str) -> bool:
        """Delete a vent along with everything attached to it locally."""
        async with self._transaction("delete_vent") as session:
            result = await session.execute(delete(Vent).where(Vent.id == vent_id))
            await session.execute(delete(Comment).where(Comment.vent_id == vent_id))
            await session.execute(delete(Reflection).where(Reflection.vent_id == vent_id))
            await session.execute(delete(Reaction).where(Reaction.vent_id == vent_id))
            return result.rowcount > 0

    async def delete_drafts(self) -> int:
        """Delete every draft; returns how many were removed."""
        async with self._transaction("delete_drafts") as session:
            result = await session.execute(delete(Vent).where(Vent.is_draft.is_(True)))
            return result.rowcount

    async def clear_all(self) -> None:
        """Erase all user content and pending sync work. Device identity survives."""
        async with self._transaction("clear_all") as session:
            for model in (
                Vent,
                Comment,
                Reaction,
                Report,
                Reflection,
                MoodLog,
                Room,
                HiddenPost,
                BlockedUser,
                OfflineAction,
            ):
                await session.execute(delete(model))
        logger.info("Local store cleared")

    # ------------------------------------------------------------------ rooms

    async def get_all_rooms(self) -> list[Room]:
        """Return rooms created on this device, ordered by name."""
        async with self._transaction("get_all_rooms") as session:
            result = await session.execute(select(Room).order_by(Room.name))
            return list(result.scalars())

    async def create_room(
        self,
        name: str,
        description: str | None = None,
        *,
        room_id: str | None = None,
    ) -> Room:
        room = Room(id=room_id or _new_id(), name=name, description=description)
        async with self._transaction("create_room") as session:
            session.add(room)
        return room

    # -------------------------------------------------------------- mood logs

    async def create_mood_log(
        self,
        date: str,
        mood_level: str,
        note: str | None = None,
    ) -> MoodLog:
        """Create the mood log for ``date``.

        Raises:
            ValidationFailure: If a log for that date already exists.
        """
        check_date_key(date)
        check_mood_level(mood_level)
        log = MoodLog(id=_new_id(), date=date, mood_level=mood_level, note=note)
        async with self._transaction("create_mood_log") as session:
            session.add(log)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise ValidationFailure(f"mood log already exists for {date}") from exc
        return log

    async def get_mood_log_by_date(self, date: str) -> MoodLog | None:
        async with self._transaction("get_mood_log_by_date") as session:
            result = await session.execute(select(MoodLog).where(MoodLog.date == date))
            return result.scalars().first()

    async def update_mood_log(
        self,
        log_id: str,
        *,
        mood_level: str,
        note: str | None = None,
    ) -> MoodLog:
        """Overwrite the level and note of an existing log.

        Raises:
            NotFound: If the log does not exist.
        """
        check_mood_level(mood_level)
        async with self._transaction("update_mood_log") as session:
            log = await session.get(MoodLog, log_id)
            if log is None:
                raise NotFound("Mood log", log_id)
            log.mood_level = mood_level
            log.note = note
            log.updated_at = utcnow()
            return log

    async def upsert_mood_log(
        self,
        date: str,
        mood_level: str,
        note: str | None = None,
    ) -> MoodLog:
        """Create or update the log for ``date`` in one statement.

        The conflict target is the unique ``date`` column, so interleaved
        writers for the same day end up updating one row.
        """
        check_date_key(date)
        check_mood_level(mood_level)
        now = utcnow()
        stmt = (
            sqlite_insert(MoodLog)
            .values(
                id=_new_id(),
                date=date,
                mood_level=mood_level,
                note=note,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_update(
                index_elements=["date"],
                set_={"mood_level": mood_level, "note": note, "updated_at": now},
            )
        )
        async with self._transaction("upsert_mood_log") as session:
            await session.execute(stmt)
            result = await session.execute(select(MoodLog).where(MoodLog.date == date))
            return result.scalars().one()

    async def get_mood_logs_by_date_range(self, start: str, end: str) -> list[MoodLog]:
        """Return logs with ``start <= date <= end``, oldest first."""
        check_date_key(start)
        check_date_key(end)
        async with self._transaction("get_mood_logs_by_date_range") as session:
            result = await session.execute(
                select(MoodLog).where(MoodLog.date >= start, MoodLog.date <= end)
            )
            logs = list(result.scalars())
        return sorted(logs, key=lambda log: sort_key(log.date))

    # ------------------------------------------------------------- moderation

    async def get_hidden_posts(self) -> set[str]:
        async with self._transaction("get_hidden_posts") as session:
            result = await session.execute(select(HiddenPost.vent_id))
            return set(result.scalars())

    async def get_blocked_users(self) -> set[str]:
        async with self._transaction("get_blocked_users") as session:
            result = await session.execute(select(BlockedUser.handle))
            return set(result.scalars())

    async def hide_post(self, vent_id: str) -> None:
        stmt = sqlite_insert(HiddenPost).values(vent_id=vent_id, hidden_at=utcnow())
        async with self._transaction("hide_post") as session:
            await session.execute(stmt.on_conflict_do_nothing(index_elements=["vent_id"]))

    async def block_user(self, handle: str) -> None:
        stmt = sqlite_insert(BlockedUser).values(handle=handle, blocked_at=utcnow())
        async with self._transaction("block_user") as session:
            await session.execute(stmt.on_conflict_do_nothing(index_elements=["handle"]))

    async def unblock_user(self, handle: str) -> bool:
        async with self._transaction("unblock_user") as session:
            result = await session.execute(delete(BlockedUser).where(BlockedUser.handle == handle))
            return result.rowcount > 0

    async def unhide_post(self, vent_id: str) -> bool:
        async with self._transaction("unhide_post") as session:
            result = await session.execute(delete(HiddenPost).where(HiddenPost.vent_id == vent_id))
            return result.rowcount > 0

    async def get_remote_ids(self, vent_ids: Iterable[str]) -> set[str]:
        """Return the backend ids recorded for the given local vent ids."""
        ids = set(vent_ids)
        if not ids:
            return set()
        async with self._transaction("get_remote_ids") as session:
            result = await session.execute(
                select(Vent.remote_id).where(Vent.id.in_(ids), Vent.remote_id.is_not(None))
            )
            return set(result.scalars())

    # -------------------------------------------------------------- reactions

    async def toggle_reaction(self, vent_id: str, reaction_type: str, handle: str) -> bool:
        """Add the reaction, or remove it if present; returns True when it is now active."""
        async with self._transaction("toggle_reaction") as session:
            result = await session.execute(
                delete(Reaction).where(
                    Reaction.vent_id == vent_id,
                    Reaction.type == reaction_type,
                    Reaction.anonymous_handle == handle,
                )
            )
            if result.rowcount > 0:
                return False
            session.add(
                Reaction(
                    id=_new_id(),
                    vent_id=vent_id,
                    type=reaction_type,
                    anonymous_handle=handle,
                    created_at=utcnow(),
                )
            )
            return True

    async def get_reactions_by_vent(self, vent_id: str) -> list[Reaction]:
        async with self._transaction("get_reactions_by_vent") as session:
            result = await session.execute(select(Reaction).where(Reaction.vent_id == vent_id))
            return list(result.scalars())

    # ---------------------------------------------------------------- reports

    async def create_report(
        self,
        *,
        vent_id: str,
        reason: str,
        anonymous_handle: str,
        description: str | None = None,
    ) -> Report:
        report = Report(
            id=_new_id(),
            vent_id=vent_id,
            reason=reason,
            description=description,
            anonymous_handle=anonymous_handle,
            created_at=utcnow(),
        )
        async with self._transaction("create_report") as session:
            session.add(report)
        return report

    async def get_reports(self) -> list[Report]:
        """Return reports filed from this device, newest first."""
        async with self._transaction("get_reports") as session:
            result = await session.execute(select(Report))
            reports = list(result.scalars())
        return sorted(reports, key=lambda report: sort_key(report.created_at), reverse=True)

    # ------------------------------------------------------------ reflections

    async def get_all_reflections(self) -> dict[str, str]:
        """Return a mapping from vent id to reflection text."""
        async with self._transaction("get_all_reflections") as session:
            result = await session.execute(select(Reflection.vent_id, Reflection.text))
            return {vent_id: text for vent_id, text in result.all()}

    async def attach_reflection(self, vent_id: str, text: str) -> bool:
        """Store a reflection unless one already exists; returns True if written."""
        stmt = (
            sqlite_insert(Reflection)
            .values(vent_id=vent_id, text=text, created_at=utcnow())
            .on_conflict_do_nothing(index_elements=["vent_id"])
        )
        async with self._transaction("attach_reflection") as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    # --------------------------------------------------------------- comments

    async def create_comment(
        self,
        *,
        vent_id: str,
        text: str,
        anonymous_handle: str,
        comment_id: str | None = None,
    ) -> Comment:
        comment = Comment(
            id=comment_id or _new_id(),
            vent_id=vent_id,
            text=text,
            anonymous_handle=anonymous_handle,
            created_at=utcnow(),
        )
        async with self._transaction("create_comment") as session:
            session.add(comment)
        return comment

    async def get_comments_by_vent(self, vent_id: str) -> list[Comment]:
        """Return comments for a vent, oldest first."""
        async with self._transaction("get_comments_by_vent") as session:
            result = await session.execute(select(Comment).where(Comment.vent_id == vent_id))
            comments = list(result.scalars())
        return sorted(comments, key=lambda comment: sort_key(comment.created_at))

    # ---------------------------------------------------------- offline queue

    async def enqueue_action(
        self,
        entity_type: str,
        operation: str,
        payload: dict[str, Any],
    ) -> OfflineAction:
        """Append an entry to the tail of the offline queue."""
        enqueued_at = utcnow()
        action = OfflineAction(
            entity_type=entity_type,
            operation=operation,
            payload=payload,
            idempotency_key=digest_json(
                {
                    "entity_type": entity_type,
                    "operation": operation,
                    "payload": payload,
                    "enqueued_at": enqueued_at.isoformat(),
                    "nonce": _new_id(),
                }
            ),
            status=ACTION_STATUS_PENDING,
            attempt_count=0,
            enqueued_at=enqueued_at,
        )
        async with self._transaction("enqueue_action") as session:
            session.add(action)
        logger.debug("Queued %s/%s as action %s", entity_type, operation, action.id)
        return action

    async def get_pending_actions(self, limit: int | None = None) -> list[OfflineAction]:
        """Return pending entries in enqueue order."""
        stmt = (
            select(OfflineAction)
            .where(OfflineAction.status == ACTION_STATUS_PENDING)
            .order_by(OfflineAction.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._transaction("get_pending_actions") as session:
            result = await session.execute(stmt)
            return list(result.scalars())

    async def get_rejected_actions(self) -> list[OfflineAction]:
        async with self._transaction("get_rejected_actions") as session:
            result = await session.execute(
                select(OfflineAction)
                .where(OfflineAction.status == ACTION_STATUS_REJECTED)
                .order_by(OfflineAction.id)
            )
            return list(result.scalars())

    async def count_pending_actions(self) -> int:
        async with self._transaction("count_pending_actions") as session:
            result = await session.execute(
                select(func.count())
                .select_from(OfflineAction)
                .where(OfflineAction.status == ACTION_STATUS_PENDING)
            )
            return int(result.scalar_one())

    async def remove_action(self, action_id: int) -> None:
        """Drop an entry whose remote operation has been confirmed."""
        async with self._transaction("remove_action") as session:
            await session.execute(delete(OfflineAction).where(OfflineAction.id == action_id))

    async def record_action_failure(self, action_id: int, error: str) -> None:
        """Keep the entry queued and note why the last attempt failed."""
        async with self._transaction("record_action_failure") as session:
            await session.execute(
                update(OfflineAction)
                .where(OfflineAction.id == action_id)
                .values(
                    attempt_count=OfflineAction.attempt_count + 1,
                    last_error=error[:500],
                )
            )

    async def reject_action(self, action_id: int, error: str) -> None:
        """Park an entry the backend refused permanently."""
        async with self._transaction("reject_action") as session:
            await session.execute(
                update(OfflineAction)
                .where(OfflineAction.id == action_id)
                .values(
                    status=ACTION_STATUS_REJECTED,
                    attempt_count=OfflineAction.attempt_count + 1,
                    last_error=error[:500],
                )
            )

    # ----------------------------------------------------------- device state

    async def get_setting(self, key: str) -> str | None:
        async with self._transaction("get_setting") as session:
            row = await session.get(DeviceState, key)
            return row.value if row else None

    async def set_setting(self, key: str, value: str) -> None:
        stmt = (
            sqlite_insert(DeviceState)
            .values(key=key, value=value)
            .on_conflict_do_update(index_elements=["key"], set_={"value": value})
        )
        async with self._transaction("set_setting") as session:
            await session.execute(stmt)

    async def set_setting_if_absent(self, key: str, value: str) -> str:
        """Store ``value`` unless the key is already set; return the stored value."""
        stmt = (
            sqlite_insert(DeviceState)
            .values(key=key, value=value)
            .on_conflict_do_nothing(index_elements=["key"])
        )
        async with self._transaction("set_setting_if_absent") as session:
            await session.execute(stmt)
            row = await session.get(DeviceState, key)
            return row.value if row else value

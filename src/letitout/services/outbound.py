"""Offline queue replay and the background worker that drives it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from letitout.core.errors import (
    IdentityUnavailable,
    RemoteRejected,
    RemoteUnavailable,
    StorageUnavailable,
    ValidationFailure,
)
from letitout.core.settings import settings
from letitout.models import OfflineAction
from letitout.repositories.local_store import LocalStore
from letitout.services.connectivity import ConnectivityMonitor
from letitout.services.gateway import RemoteGateway
from letitout.services.identity import IdentityProvider
from letitout.services.publisher import (
    ENTITY_COMMENT,
    ENTITY_MOOD_LOG,
    ENTITY_REACTION,
    ENTITY_REPORT,
    ENTITY_VENT,
    OP_CREATE,
    OP_TOGGLE,
    OP_UPSERT,
)

logger = logging.getLogger(__name__)

Handler = Callable[[OfflineAction], Awaitable[None]]


@dataclass
class FlushReport:
    """What a single flush did."""

    replayed: int = 0
    rejected: int = 0
    blocked_action_id: int | None = None
    offline: bool = False

    @property
    def completed(self) -> bool:
        return self.blocked_action_id is None and not self.offline


class OutboundReplayer:
    """Replays queued actions strictly in enqueue order.

    A transient failure stops the flush at that entry so nothing behind it
    runs out of order. A permanent rejection parks the entry as ``rejected``
    and the flush moves on.
    """

    def __init__(
        self,
        store: LocalStore,
        gateway: RemoteGateway,
        identity: IdentityProvider,
        connectivity: ConnectivityMonitor,
        *,
        batch_size: int | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._identity = identity
        self._connectivity = connectivity
        self._batch_size = batch_size or settings.sync_batch_size
        self._lock = asyncio.Lock()
        self._handlers: dict[tuple[str, str], Handler] = {
            (ENTITY_VENT, OP_CREATE): self._replay_vent_create,
            (ENTITY_COMMENT, OP_CREATE): self._replay_comment_create,
            (ENTITY_MOOD_LOG, OP_UPSERT): self._replay_mood_log_upsert,
            (ENTITY_REACTION, OP_TOGGLE): self._replay_reaction_toggle,
            (ENTITY_REPORT, OP_CREATE): self._replay_report_create,
        }

    @property
    def flushing(self) -> bool:
        return self._lock.locked()

    async def flush(self) -> FlushReport:
        """Replay pending actions until the queue drains, a call fails, or we go offline.

        Concurrent callers wait for the running flush to finish before starting.

        Raises:
            StorageUnavailable: If the queue itself cannot be read or updated.
        """
        async with self._lock:
            report = FlushReport()
            while True:
                if not self._connectivity.is_online:
                    report.offline = True
                    return report
                batch = await self._store.get_pending_actions(limit=self._batch_size)
                if not batch:
                    break
                for action in batch:
                    if not self._connectivity.is_online:
                        report.offline = True
                        return report
                    if not await self._replay(action, report):
                        return report
            if report.replayed or report.rejected:
                logger.info(
                    "Queue flush finished: %d replayed, %d rejected",
                    report.replayed,
                    report.rejected,
                )
            return report

    async def _replay(self, action: OfflineAction, report: FlushReport) -> bool:
        """Attempt one entry; return False when the flush must stop."""
        handler = self._handlers.get((action.entity_type, action.operation))
        if handler is None:
            await self._reject(action, f"unknown action {action.entity_type}/{action.operation}")
            report.rejected += 1
            return True
        try:
            await handler(action)
        except RemoteUnavailable as exc:
            logger.info("Replay of action %s deferred: %s", action.id, exc)
            await self._store.record_action_failure(action.id, str(exc))
            report.blocked_action_id = action.id
            return False
        except (RemoteRejected, ValidationFailure) as exc:
            await self._reject(action, str(exc))
            report.rejected += 1
            return True
        await self._store.remove_action(action.id)
        report.replayed += 1
        return True

    async def _reject(self, action: OfflineAction, reason: str) -> None:
        logger.error(
            "Backend permanently rejected action %s (%s/%s): %s",
            action.id,
            action.entity_type,
            action.operation,
            reason,
        )
        await self._store.reject_action(action.id, reason)

    async def _body_with_device(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = dict(payload.get("body") or {})
        if not body.get("deviceId"):
            try:
                body["deviceId"] = await self._identity.get_device_id()
            except IdentityUnavailable as exc:
                raise RemoteUnavailable("device identity unavailable for replay") from exc
        return body

    async def _replay_vent_create(self, action: OfflineAction) -> None:
        local_id = action.payload.get("local_id")
        vent = await self._store.get_vent(local_id) if local_id else None
        if local_id and vent is None:
            logger.info("Vent %s was deleted before it synced; dropping action %s",
                        local_id, action.id)
            return
        if vent is not None and vent.remote_id:
            return
        body = await self._body_with_device(action.payload)
        remote = await self._gateway.create_vent(body, idempotency_key=action.idempotency_key)
        if local_id:
            await self._store.mark_vent_synced(local_id, remote.id)
            if remote.reflection:
                await self._store.attach_reflection(local_id, remote.reflection)

    async def _body_with_vent(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Fill in the backend vent id for entries written against a local vent."""
        body = await self._body_with_device(payload)
        if not body.get("ventId"):
            local_vent_id = payload.get("local_vent_id")
            vent = await self._store.get_vent(local_vent_id) if local_vent_id else None
            if vent is None or not vent.remote_id:
                raise RemoteRejected(f"vent {local_vent_id} never reached the backend")
            body["ventId"] = vent.remote_id
        return body

    async def _replay_comment_create(self, action: OfflineAction) -> None:
        body = await self._body_with_vent(action.payload)
        await self._gateway.create_comment(body, idempotency_key=action.idempotency_key)

    async def _replay_reaction_toggle(self, action: OfflineAction) -> None:
        body = await self._body_with_vent(action.payload)
        await self._gateway.toggle_reaction(body, idempotency_key=action.idempotency_key)

    async def _replay_report_create(self, action: OfflineAction) -> None:
        body = await self._body_with_vent(action.payload)
        await self._gateway.create_report(body, idempotency_key=action.idempotency_key)

    async def _replay_mood_log_upsert(self, action: OfflineAction) -> None:
        body = await self._body_with_device(action.payload)
        await self._gateway.save_mood_log(body, idempotency_key=action.idempotency_key)


class OutboundSyncWorker:
    """Periodically probes connectivity and flushes the offline queue."""

    def __init__(
        self,
        replayer: OutboundReplayer,
        connectivity: ConnectivityMonitor,
        *,
        interval: float | None = None,
    ) -> None:
        self.replayer = replayer
        self.connectivity = connectivity
        self.interval = max(0.1, float(interval or settings.sync_interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background synchronization loop."""

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background synchronization loop."""

        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.connectivity.probe()
                if self.connectivity.is_online:
                    await self.replayer.flush()
            except StorageUnavailable as e:
                logger.warning("OutboundSyncWorker could not reach the local store: %s", e)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error(
                    "OutboundSyncWorker encountered data processing error: %s", e, exc_info=True
                )

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except TimeoutError:
                continue

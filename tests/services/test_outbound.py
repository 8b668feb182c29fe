import asyncio

import pytest
import pytest_asyncio

from letitout.core.errors import RemoteRejected
from letitout.repositories.local_store import LocalStore
from letitout.schemas.remote import RemoteComment, RemoteMoodLog, RemoteReaction, RemoteReport
from letitout.services.connectivity import ConnectivityMonitor, ConnectivityState
from letitout.services.outbound import OutboundReplayer, OutboundSyncWorker


@pytest.fixture()
def replayer(store, gateway, identity, connectivity) -> OutboundReplayer:
    return OutboundReplayer(store, gateway, identity, connectivity, batch_size=2)


@pytest_asyncio.fixture()
async def online(connectivity: ConnectivityMonitor) -> ConnectivityMonitor:
    await connectivity.set_state(ConnectivityState.ONLINE)
    return connectivity


def mood_payload(date: str, level: str = "Okay") -> dict:
    return {"body": {"deviceId": "dev-1", "date": date, "moodLevel": level, "note": None}}


def stub_backend(gateway, make_remote_vent) -> None:
    gateway.create_vent.side_effect = None
    gateway.create_vent.return_value = make_remote_vent(id="r-1", reflection="You matter.")
    gateway.create_comment.side_effect = None
    gateway.create_comment.return_value = RemoteComment(
        id="c-1", ventId="r-1", text="hugs", createdAt="2024-05-01T10:00:00Z"
    )
    gateway.save_mood_log.side_effect = None
    gateway.save_mood_log.return_value = RemoteMoodLog(
        id="m-1", date="2024-05-01", moodLevel="Okay"
    )


async def test_flush_replays_in_enqueue_order(
    replayer: OutboundReplayer, store: LocalStore, gateway, online, make_remote_vent
) -> None:
    stub_backend(gateway, make_remote_vent)
    await store.create_vent(text="first", vent_id="l1")
    vent_action = await store.enqueue_action(
        "vent", "create", {"local_id": "l1", "body": {"text": "first", "deviceId": "dev-1"}}
    )
    await store.enqueue_action(
        "comment",
        "create",
        {"local_vent_id": "l1", "body": {"ventId": None, "text": "hugs", "deviceId": "dev-1"}},
    )
    await store.enqueue_action("mood_log", "upsert", mood_payload("2024-05-01"))

    report = await replayer.flush()

    assert report.replayed == 3
    assert report.completed
    called = [name for name, _, _ in gateway.mock_calls]
    assert called == ["create_vent", "create_comment", "save_mood_log"]
    assert gateway.create_vent.await_args.kwargs["idempotency_key"] == vent_action.idempotency_key
    assert gateway.create_comment.await_args.args[0]["ventId"] == "r-1"
    vent = await store.get_vent("l1")
    assert vent.remote_id == "r-1"
    assert await store.get_all_reflections() == {"l1": "You matter."}
    assert await store.count_pending_actions() == 0


async def test_transient_failure_blocks_the_rest_of_the_queue(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    await store.create_vent(text="first", vent_id="l1")
    blocked = await store.enqueue_action(
        "vent", "create", {"local_id": "l1", "body": {"text": "first", "deviceId": "dev-1"}}
    )
    await store.enqueue_action("mood_log", "upsert", mood_payload("2024-05-01"))

    report = await replayer.flush()

    assert report.blocked_action_id == blocked.id
    assert not report.completed
    gateway.save_mood_log.assert_not_awaited()
    head, tail = await store.get_pending_actions()
    assert head.id == blocked.id
    assert head.attempt_count == 1
    assert "unreachable" in head.last_error
    assert tail.entity_type == "mood_log"


async def test_permanent_rejection_is_parked_and_flush_continues(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    gateway.create_vent.side_effect = RemoteRejected("bad payload", status_code=400)
    gateway.save_mood_log.side_effect = None
    gateway.save_mood_log.return_value = RemoteMoodLog(id="m-1", date="2024-05-01",
                                                       moodLevel="Okay")
    await store.create_vent(text="first", vent_id="l1")
    await store.enqueue_action(
        "vent", "create", {"local_id": "l1", "body": {"text": "first", "deviceId": "dev-1"}}
    )
    await store.enqueue_action("mood_log", "upsert", mood_payload("2024-05-01"))

    report = await replayer.flush()

    assert (report.replayed, report.rejected) == (1, 1)
    assert report.completed
    [rejected] = await store.get_rejected_actions()
    assert rejected.entity_type == "vent"
    assert rejected.last_error == "bad payload"
    assert await store.count_pending_actions() == 0


async def test_flush_does_nothing_while_offline(
    replayer: OutboundReplayer, store: LocalStore, gateway
) -> None:
    await store.enqueue_action("mood_log", "upsert", mood_payload("2024-05-01"))

    report = await replayer.flush()

    assert report.offline
    gateway.save_mood_log.assert_not_awaited()
    assert await store.count_pending_actions() == 1


async def test_vent_deleted_before_sync_is_dropped(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    await store.enqueue_action("vent", "create", {"local_id": "gone", "body": {"text": "x"}})

    report = await replayer.flush()

    assert report.completed
    gateway.create_vent.assert_not_awaited()
    assert await store.count_pending_actions() == 0


async def test_already_synced_vent_is_not_sent_twice(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    await store.create_vent(text="first", vent_id="l1")
    await store.mark_vent_synced("l1", "r-1")
    await store.enqueue_action("vent", "create", {"local_id": "l1", "body": {"text": "first"}})

    await replayer.flush()

    gateway.create_vent.assert_not_awaited()
    assert await store.count_pending_actions() == 0


async def test_comment_on_never_synced_vent_is_rejected(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    await store.create_vent(text="local only", vent_id="l1")
    await store.enqueue_action(
        "comment", "create", {"local_vent_id": "l1", "body": {"ventId": None, "text": "hi"}}
    )

    report = await replayer.flush()

    assert report.rejected == 1
    gateway.create_comment.assert_not_awaited()


async def test_missing_device_id_is_filled_at_replay(
    replayer: OutboundReplayer, store: LocalStore, gateway, identity, online
) -> None:
    gateway.save_mood_log.side_effect = None
    gateway.save_mood_log.return_value = RemoteMoodLog(id="m-1", date="2024-05-01",
                                                       moodLevel="Okay")
    await store.enqueue_action(
        "mood_log", "upsert", {"body": {"deviceId": None, "date": "2024-05-01",
                                        "moodLevel": "Okay"}}
    )

    await replayer.flush()

    sent = gateway.save_mood_log.await_args.args[0]
    assert sent["deviceId"] == await identity.get_device_id()


async def test_unknown_action_is_rejected(
    replayer: OutboundReplayer, store: LocalStore, online
) -> None:
    await store.enqueue_action("sticker", "create", {"body": {}})

    report = await replayer.flush()

    assert report.rejected == 1
    assert await store.count_pending_actions() == 0


async def test_concurrent_flushes_send_each_entry_once(
    replayer: OutboundReplayer, store: LocalStore, gateway, online, make_remote_vent
) -> None:
    stub_backend(gateway, make_remote_vent)
    for day in ("2024-05-01", "2024-05-02", "2024-05-03"):
        await store.enqueue_action("mood_log", "upsert", mood_payload(day))

    reports = await asyncio.gather(replayer.flush(), replayer.flush())

    assert sum(report.replayed for report in reports) == 3
    assert gateway.save_mood_log.await_count == 3


async def test_flush_stops_when_connectivity_drops(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    async def drop_connection(payload, *, idempotency_key=None):
        await online.set_state(ConnectivityState.OFFLINE)
        return RemoteMoodLog(id="m-1", date=payload["date"], moodLevel="Okay")

    gateway.save_mood_log.side_effect = drop_connection
    await store.enqueue_action("mood_log", "upsert", mood_payload("2024-05-01"))
    await store.enqueue_action("mood_log", "upsert", mood_payload("2024-05-02"))

    report = await replayer.flush()

    assert report.replayed == 1
    assert report.offline
    assert await store.count_pending_actions() == 1


async def test_worker_probes_and_drains_queue(
    replayer: OutboundReplayer, store: LocalStore, gateway, connectivity
) -> None:
    gateway.ping.return_value = True
    gateway.save_mood_log.side_effect = None
    gateway.save_mood_log.return_value = RemoteMoodLog(id="m-1", date="2024-05-01",
                                                       moodLevel="Okay")
    await store.enqueue_action("mood_log", "upsert", mood_payload("2024-05-01"))
    worker = OutboundSyncWorker(replayer, connectivity, interval=0.1)

    await worker.start()
    for _ in range(50):
        if await store.count_pending_actions() == 0:
            break
        await asyncio.sleep(0.05)
    await worker.stop()

    assert connectivity.is_online
    assert await store.count_pending_actions() == 0


async def test_worker_keeps_running_when_backend_is_down(
    replayer: OutboundReplayer, gateway, connectivity
) -> None:
    worker = OutboundSyncWorker(replayer, connectivity, interval=0.1)

    await worker.start()
    await asyncio.sleep(0.25)
    await worker.stop()

    assert gateway.ping.await_count >= 2
    assert not connectivity.is_online


async def test_worker_stop_without_start_is_noop(replayer: OutboundReplayer, connectivity) -> None:
    worker = OutboundSyncWorker(replayer, connectivity)

    await worker.stop()


async def test_reaction_and_report_replay_against_synced_vent(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    gateway.toggle_reaction.side_effect = None
    gateway.toggle_reaction.return_value = RemoteReaction(
        id="x-1", ventId="r-1", type="support", createdAt="2024-05-01T10:00:00Z"
    )
    gateway.create_report.side_effect = None
    gateway.create_report.return_value = RemoteReport(id="rep-1", ventId="r-1", reason="spam")
    await store.create_vent(text="first", vent_id="l1")
    await store.mark_vent_synced("l1", "r-1")
    await store.enqueue_action(
        "reaction",
        "toggle",
        {"local_vent_id": "l1", "body": {"ventId": None, "type": "support"}},
    )
    await store.enqueue_action(
        "report", "create", {"local_vent_id": "l1", "body": {"ventId": None, "reason": "spam"}}
    )

    report = await replayer.flush()

    assert report.replayed == 2
    assert gateway.toggle_reaction.await_args.args[0]["ventId"] == "r-1"
    assert gateway.create_report.await_args.args[0]["ventId"] == "r-1"
    assert gateway.create_report.await_args.kwargs["idempotency_key"]


async def test_reaction_on_never_synced_vent_is_rejected(
    replayer: OutboundReplayer, store: LocalStore, gateway, online
) -> None:
    await store.create_vent(text="local only", vent_id="l1")
    await store.enqueue_action(
        "reaction", "toggle", {"local_vent_id": "l1", "body": {"ventId": None}}
    )

    report = await replayer.flush()

    assert report.rejected == 1
    gateway.toggle_reaction.assert_not_awaited()

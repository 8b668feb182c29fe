from datetime import date, timedelta

import pytest

from letitout.core.errors import StorageUnavailable
from letitout.db.time import today_key
from letitout.repositories.local_store import LocalStore
from letitout.schemas.remote import RemoteMoodLog
from letitout.services.mood_history import MoodHistoryService, history_window


@pytest.fixture()
def history(store, gateway, identity) -> MoodHistoryService:
    return MoodHistoryService(store, gateway, identity)


def days_ago(days: int) -> str:
    return (date.fromisoformat(today_key()) - timedelta(days=days)).isoformat()


def serve_logs(gateway, *logs: RemoteMoodLog) -> None:
    gateway.get_mood_logs.side_effect = None
    gateway.get_mood_logs.return_value = list(logs)


def test_history_window_is_inclusive() -> None:
    start, end = history_window(7)

    assert end == today_key()
    assert start == days_ago(6)
    assert history_window(0) == (today_key(), today_key())


async def test_remote_logs_update_local_by_date(
    history: MoodHistoryService, store: LocalStore, gateway
) -> None:
    await store.upsert_mood_log(today_key(), "Low", "rough morning")
    serve_logs(
        gateway,
        RemoteMoodLog(id="m-1", date=today_key(), moodLevel="Great", note="better now"),
        RemoteMoodLog(id="m-2", date=days_ago(2), moodLevel="Meh"),
    )

    logs = await history.load_mood_history(7)

    assert [(log.date, log.mood_level) for log in logs] == [
        (days_ago(2), "Meh"),
        (today_key(), "Great"),
    ]
    assert logs[1].note == "better now"
    start, end = gateway.get_mood_logs.await_args.args[1:]
    assert (start, end) == history_window(7)


async def test_dates_with_queued_writes_keep_the_local_value(
    history: MoodHistoryService, store: LocalStore, gateway
) -> None:
    await store.upsert_mood_log(today_key(), "Low")
    await store.enqueue_action(
        "mood_log", "upsert", {"body": {"date": today_key(), "moodLevel": "Low"}}
    )
    serve_logs(gateway, RemoteMoodLog(id="m-1", date=today_key(), moodLevel="Great"))

    [log] = await history.load_mood_history(7)

    assert log.mood_level == "Low"


async def test_malformed_remote_log_is_skipped(
    history: MoodHistoryService, store: LocalStore, gateway
) -> None:
    serve_logs(
        gateway,
        RemoteMoodLog(id="m-1", date=days_ago(1), moodLevel="Ecstatic"),
        RemoteMoodLog(id="m-2", date=today_key(), moodLevel="Okay"),
    )

    logs = await history.load_mood_history(7)

    assert [log.date for log in logs] == [today_key()]


async def test_backend_failure_falls_back_to_local(
    history: MoodHistoryService, store: LocalStore
) -> None:
    await store.upsert_mood_log(days_ago(1), "Good")
    await store.upsert_mood_log(days_ago(30), "Low")

    logs = await history.load_mood_history(7)

    assert [log.mood_level for log in logs] == ["Good"]


async def test_local_failure_returns_remote_logs(
    history: MoodHistoryService, store: LocalStore, gateway, mocker
) -> None:
    serve_logs(
        gateway,
        RemoteMoodLog(id="m-2", date=today_key(), moodLevel="Okay"),
        RemoteMoodLog(id="m-1", date=days_ago(3), moodLevel="Good"),
    )
    mocker.patch.object(
        store, "get_mood_logs_by_date_range", side_effect=StorageUnavailable("disk error")
    )

    logs = await history.load_mood_history(7)

    assert [log.id for log in logs] == ["m-1", "m-2"]


async def test_both_sources_failing_raises(
    history: MoodHistoryService, store: LocalStore, mocker
) -> None:
    mocker.patch.object(
        store, "get_mood_logs_by_date_range", side_effect=StorageUnavailable("disk error")
    )

    with pytest.raises(StorageUnavailable):
        await history.load_mood_history(7)

import asyncio
from datetime import timedelta

import pytest

from letitout.core.errors import NotADraft, NotFound, StorageUnavailable, ValidationFailure
from letitout.db.session import drop_tables
from letitout.db.time import utcnow
from letitout.models.device_state import DEVICE_ID_KEY
from letitout.repositories.local_store import LocalStore


async def test_public_vents_exclude_drafts_and_sort_newest_first(store: LocalStore) -> None:
    now = utcnow()
    await store.create_vent(text="older", vent_id="a", created_at=now - timedelta(hours=2))
    await store.create_vent(text="newer", vent_id="b", created_at=now - timedelta(hours=1))
    await store.create_vent(text="draft", vent_id="c", is_draft=True, created_at=now)

    public = await store.get_public_vents()
    drafts = await store.get_drafts()
    everything = await store.get_all_vents()

    assert [v.id for v in public] == ["b", "a"]
    assert [v.id for v in drafts] == ["c"]
    assert [v.id for v in everything] == ["c", "b", "a"]


async def test_public_vents_filtered_by_room_refs(store: LocalStore) -> None:
    await store.create_vent(text="work", room="default-work", vent_id="w")
    await store.create_vent(text="named", room="Work Frustrations", vent_id="n")
    await store.create_vent(text="grief", room="default-grief", vent_id="g")

    vents = await store.get_public_vents(room_refs={"default-work", "Work Frustrations"})

    assert {v.id for v in vents} == {"w", "n"}


async def test_get_vent_returns_none_when_missing(store: LocalStore) -> None:
    assert await store.get_vent("missing") is None


async def test_publish_draft_transitions_once(store: LocalStore) -> None:
    await store.create_vent(text="draft", vent_id="d1", is_draft=True)

    published = await store.publish_draft("d1")
    assert published.is_draft is False

    with pytest.raises(NotADraft):
        await store.publish_draft("d1")

    assert [v.id for v in await store.get_public_vents()] == ["d1"]
    assert await store.get_drafts() == []


async def test_publish_missing_draft_raises_not_found(store: LocalStore) -> None:
    with pytest.raises(NotFound) as excinfo:
        await store.publish_draft("missing")
    assert excinfo.value.entity == "Draft"
    assert await store.get_all_vents() == []


async def test_concurrent_publish_has_exactly_one_winner(store: LocalStore) -> None:
    await store.create_vent(text="race", vent_id="race", is_draft=True)

    results = await asyncio.gather(
        store.publish_draft("race"),
        store.publish_draft("race"),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, NotADraft)]
    assert len(winners) == 1
    assert len(losers) == 1


async def test_mark_vent_synced_records_remote_id(store: LocalStore) -> None:
    await store.create_vent(text="hello", vent_id="v1")

    assert await store.mark_vent_synced("v1", "remote-9") is True
    assert await store.mark_vent_synced("gone", "remote-10") is False

    vent = await store.get_vent("v1")
    assert vent is not None
    assert vent.remote_id == "remote-9"


async def test_delete_vent_removes_comments_and_reflection(store: LocalStore) -> None:
    await store.create_vent(text="bye", vent_id="v1")
    await store.create_comment(vent_id="v1", text="hugs", anonymous_handle="Kind1")
    await store.attach_reflection("v1", "You were heard.")

    assert await store.delete_vent("v1") is True
    assert await store.delete_vent("v1") is False
    assert await store.get_comments_by_vent("v1") == []
    assert await store.get_all_reflections() == {}


async def test_delete_drafts_only_touches_drafts(store: LocalStore) -> None:
    await store.create_vent(text="keep", vent_id="p")
    await store.create_vent(text="drop", vent_id="d", is_draft=True)

    assert await store.delete_drafts() == 1
    assert [v.id for v in await store.get_all_vents()] == ["p"]


async def test_clear_all_keeps_device_identity(store: LocalStore) -> None:
    await store.set_setting(DEVICE_ID_KEY, "device-1")
    await store.create_vent(text="x", vent_id="v")
    await store.create_room("Night Owls")
    await store.upsert_mood_log("2024-05-01", "Good")
    await store.hide_post("v")
    await store.block_user("Troll1")
    await store.enqueue_action("vent", "create", {"local_id": "v"})

    await store.clear_all()

    assert await store.get_all_vents() == []
    assert await store.get_all_rooms() == []
    assert await store.get_mood_logs_by_date_range("2024-01-01", "2024-12-31") == []
    assert await store.get_hidden_posts() == set()
    assert await store.get_blocked_users() == set()
    assert await store.count_pending_actions() == 0
    assert await store.get_setting(DEVICE_ID_KEY) == "device-1"


async def test_create_mood_log_rejects_second_log_for_same_date(store: LocalStore) -> None:
    await store.create_mood_log("2024-05-01", "Good")

    with pytest.raises(ValidationFailure):
        await store.create_mood_log("2024-05-01", "Low")

    log = await store.get_mood_log_by_date("2024-05-01")
    assert log is not None
    assert log.mood_level == "Good"


async def test_update_mood_log_in_place(store: LocalStore) -> None:
    log = await store.create_mood_log("2024-05-01", "Good")

    updated = await store.update_mood_log(log.id, mood_level="Meh", note="long day")

    assert updated.id == log.id
    assert updated.mood_level == "Meh"
    with pytest.raises(NotFound):
        await store.update_mood_log("missing", mood_level="Meh")


async def test_upsert_mood_log_keeps_one_row_per_date(store: LocalStore) -> None:
    await asyncio.gather(
        store.upsert_mood_log("2024-05-02", "Great"),
        store.upsert_mood_log("2024-05-02", "Low"),
        store.upsert_mood_log("2024-05-02", "Okay", "evening"),
    )

    logs = await store.get_mood_logs_by_date_range("2024-05-02", "2024-05-02")
    assert len(logs) == 1
    assert logs[0].mood_level in {"Great", "Low", "Okay"}


async def test_mood_log_range_is_inclusive_and_ascending(store: LocalStore) -> None:
    for date in ("2024-05-03", "2024-05-01", "2024-05-05", "2024-04-30"):
        await store.upsert_mood_log(date, "Okay")

    logs = await store.get_mood_logs_by_date_range("2024-05-01", "2024-05-05")

    assert [log.date for log in logs] == ["2024-05-01", "2024-05-03", "2024-05-05"]


async def test_mood_log_rejects_unknown_level_and_bad_date(store: LocalStore) -> None:
    with pytest.raises(ValidationFailure):
        await store.upsert_mood_log("2024-05-01", "Ecstatic")
    with pytest.raises(ValidationFailure):
        await store.upsert_mood_log("20240501", "Good")


async def test_moderation_lists_are_sets(store: LocalStore) -> None:
    await store.hide_post("v1")
    await store.hide_post("v1")
    await store.block_user("Troll1")
    await store.block_user("Troll1")

    assert await store.get_hidden_posts() == {"v1"}
    assert await store.get_blocked_users() == {"Troll1"}
    assert await store.unblock_user("Troll1") is True
    assert await store.get_blocked_users() == set()


async def test_reflection_is_set_once(store: LocalStore) -> None:
    assert await store.attach_reflection("v1", "first") is True
    assert await store.attach_reflection("v1", "second") is False
    assert await store.get_all_reflections() == {"v1": "first"}


async def test_queue_preserves_enqueue_order(store: LocalStore) -> None:
    first = await store.enqueue_action("vent", "create", {"n": 1})
    second = await store.enqueue_action("comment", "create", {"n": 2})
    third = await store.enqueue_action("mood_log", "upsert", {"n": 3})

    pending = await store.get_pending_actions()

    assert [a.id for a in pending] == [first.id, second.id, third.id]
    assert len({a.idempotency_key for a in pending}) == 3
    assert all(len(a.idempotency_key) == 64 for a in pending)


async def test_queue_failure_and_rejection_bookkeeping(store: LocalStore) -> None:
    first = await store.enqueue_action("vent", "create", {"n": 1})
    second = await store.enqueue_action("vent", "create", {"n": 2})

    await store.record_action_failure(first.id, "timeout")
    await store.reject_action(second.id, "400 bad room")

    pending = await store.get_pending_actions()
    rejected = await store.get_rejected_actions()
    assert [(a.id, a.attempt_count, a.last_error) for a in pending] == [(first.id, 1, "timeout")]
    assert [a.id for a in rejected] == [second.id]
    assert await store.count_pending_actions() == 1

    await store.remove_action(first.id)
    assert await store.count_pending_actions() == 0


async def test_set_setting_if_absent_keeps_first_value(store: LocalStore) -> None:
    assert await store.set_setting_if_absent("k", "one") == "one"
    assert await store.set_setting_if_absent("k", "two") == "one"
    await store.set_setting("k", "three")
    assert await store.get_setting("k") == "three"


async def test_database_errors_surface_as_storage_unavailable(
    store: LocalStore, db_engine
) -> None:
    await drop_tables(db_engine)

    with pytest.raises(StorageUnavailable):
        await store.get_public_vents()


async def test_unhide_post_restores_visibility(store: LocalStore) -> None:
    await store.hide_post("v1")

    assert await store.unhide_post("v1") is True
    assert await store.unhide_post("v1") is False
    assert await store.get_hidden_posts() == set()


async def test_remote_ids_are_looked_up_for_synced_vents_only(store: LocalStore) -> None:
    await store.create_vent(text="synced", vent_id="l1")
    await store.mark_vent_synced("l1", "r1")
    await store.create_vent(text="pending", vent_id="l2")

    assert await store.get_remote_ids({"l1", "l2", "missing"}) == {"r1"}
    assert await store.get_remote_ids([]) == set()


async def test_toggle_reaction_flips_one_row_per_handle_and_type(store: LocalStore) -> None:
    assert await store.toggle_reaction("v1", "support", "Kind1") is True
    assert await store.toggle_reaction("v1", "empathy", "Kind1") is True
    assert await store.toggle_reaction("v1", "support", "Kind2") is True
    assert await store.toggle_reaction("v1", "support", "Kind1") is False

    reactions = await store.get_reactions_by_vent("v1")
    assert sorted((r.type, r.anonymous_handle) for r in reactions) == [
        ("empathy", "Kind1"),
        ("support", "Kind2"),
    ]


async def test_reports_and_reactions_are_cleared_with_their_vent(store: LocalStore) -> None:
    await store.create_vent(text="x", vent_id="v1")
    await store.toggle_reaction("v1", "support", "Kind1")
    report = await store.create_report(vent_id="v1", reason="spam", anonymous_handle="Kind1")

    assert [r.id for r in await store.get_reports()] == [report.id]
    await store.delete_vent("v1")
    assert await store.get_reactions_by_vent("v1") == []

    await store.clear_all()
    assert await store.get_reports() == []

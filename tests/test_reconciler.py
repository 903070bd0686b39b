"""셀 상태 전이 / 저장소 반영 테스트."""

import pytest

from launch_tracker.models import LaunchProject, LaunchStatus
from launch_tracker.reconciler import (
    LAUNCHED, NONE, PENDING, PRIMARY, REJECTED, SECONDARY,
    StatusReconciler, cycle_secondary, toggle_primary,
)
from launch_tracker.store import StoreError

CAT = "국내비독점 [라이브]"
KEY = "proj1::국내비독점 [라이브]::lezhin"


def keys_in_store(store):
    return sorted(r.key for r in store.find(LaunchStatus))


# -----------------------
# 전이표
# -----------------------
@pytest.mark.parametrize("status", [NONE, LAUNCHED])
def test_primary_toggle_twice_is_identity(status):
    assert toggle_primary(toggle_primary(status)) == status


def test_primary_toggle_from_pending_launches():
    assert toggle_primary(PENDING) == LAUNCHED


def test_secondary_cycle_table():
    assert cycle_secondary(NONE) == PENDING
    assert cycle_secondary(PENDING) == REJECTED
    assert cycle_secondary(REJECTED) == NONE
    assert cycle_secondary(LAUNCHED) == PENDING


def test_secondary_cycle_three_times_returns_to_none():
    s = NONE
    for _ in range(3):
        s = cycle_secondary(s)
    assert s == NONE


# -----------------------
# 클릭 시나리오
# -----------------------
def test_click_scenario(reconciler, store):
    assert reconciler.resolve("proj1", "lezhin", CAT).status == NONE

    assert reconciler.click("proj1", "lezhin", CAT, PRIMARY).status == LAUNCHED
    record = store.first(LaunchStatus, key=KEY)
    assert record.status == LAUNCHED
    assert record.project_id == "proj1"
    assert record.category == CAT
    assert record.platform_id == "lezhin"

    assert reconciler.click("proj1", "lezhin", CAT, PRIMARY).status == NONE
    assert keys_in_store(store) == []

    assert reconciler.click("proj1", "lezhin", CAT, SECONDARY).status == PENDING
    assert reconciler.click("proj1", "lezhin", CAT, SECONDARY).status == REJECTED
    assert store.first(LaunchStatus, key=KEY).status == REJECTED
    assert reconciler.click("proj1", "lezhin", CAT, SECONDARY).status == NONE
    assert keys_in_store(store) == []
    assert reconciler.resolve("proj1", "lezhin", CAT).status == NONE


def test_unknown_button_and_editing_cell_are_ignored(reconciler, store):
    assert reconciler.click("proj1", "lezhin", CAT, "middle").status == NONE
    assert reconciler.click("proj1", "lezhin", CAT, PRIMARY, editing=True).status == NONE
    assert keys_in_store(store) == []


def test_click_uses_owning_project_id_of_launch_project(reconciler, store):
    lp = store.add(LaunchProject(title="작품A", category=CAT, project_id="main1"))
    reconciler.click(lp.id, "lezhin", CAT, PRIMARY)
    assert keys_in_store(store) == ["main1::국내비독점 [라이브]::lezhin"]


# -----------------------
# 레거시 키
# -----------------------
def test_canonical_preferred_over_legacy_regardless_of_order(store):
    legacy = LaunchStatus(key="proj1-lezhin", project_id="proj1", platform_id="lezhin", status=PENDING)
    canonical = LaunchStatus(key=KEY, project_id="proj1", platform_id="lezhin",
                             category=CAT, status=LAUNCHED)
    for rows in ([legacy, canonical], [canonical, legacy]):
        r = StatusReconciler(store)
        r.apply_status_snapshot(rows)
        cell = r.resolve("proj1", "lezhin", CAT)
        assert cell.status == LAUNCHED
        assert cell.source == "canonical"


def test_legacy_fallback(reconciler, store):
    store.add(LaunchStatus(key="proj1-lezhin", project_id="proj1", platform_id="lezhin",
                           status=REJECTED, note="재심사"))
    cell = reconciler.resolve("proj1", "lezhin", CAT)
    assert (cell.status, cell.note, cell.source) == (REJECTED, "재심사", "legacy")


def test_none_removes_canonical_and_legacy_records(reconciler, store):
    store.add(LaunchStatus(key="proj1-lezhin", project_id="proj1", platform_id="lezhin", status=LAUNCHED))
    store.add(LaunchStatus(key=KEY, project_id="proj1", platform_id="lezhin",
                           category=CAT, status=LAUNCHED))

    assert reconciler.click("proj1", "lezhin", CAT, PRIMARY).status == NONE
    assert store.find(LaunchStatus, key=KEY) == []
    assert store.find(LaunchStatus, key="proj1-lezhin") == []


def test_non_none_write_migrates_legacy_record(reconciler, store):
    store.add(LaunchStatus(key="proj1-lezhin", project_id="proj1", platform_id="lezhin", status=PENDING))

    assert reconciler.click("proj1", "lezhin", CAT, SECONDARY).status == REJECTED
    assert keys_in_store(store) == [KEY]
    assert store.first(LaunchStatus, key=KEY).status == REJECTED


# -----------------------
# 메모
# -----------------------
def test_save_note_creates_then_updates(reconciler, store):
    cell = reconciler.save_note("proj1", "lezhin", CAT, "  12/1 오픈  ")
    assert cell.note == "12/1 오픈"
    record = store.first(LaunchStatus, key=KEY)
    assert (record.status, record.note) == (NONE, "12/1 오픈")

    reconciler.click("proj1", "lezhin", CAT, PRIMARY)
    record = store.first(LaunchStatus, key=KEY)
    assert (record.status, record.note) == (LAUNCHED, "12/1 오픈")
    assert reconciler.resolve("proj1", "lezhin", CAT).note == "12/1 오픈"


# -----------------------
# 저장 실패 / outbox
# -----------------------
def test_failed_write_keeps_local_state_and_outbox_entry(reconciler, store):
    store.fail_writes = True
    cell = reconciler.click("proj1", "lezhin", CAT, PRIMARY)

    assert cell.status == LAUNCHED
    assert reconciler.resolve("proj1", "lezhin", CAT).status == LAUNCHED
    assert keys_in_store(store) == []
    [entry] = reconciler.outbox.pending()
    assert entry.raw_key == KEY
    assert entry.attempts == 1
    assert "simulated" in entry.last_error

    store.fail_writes = False
    result = reconciler.outbox.flush()
    assert result.applied == [KEY]
    assert len(reconciler.outbox) == 0
    assert store.first(LaunchStatus, key=KEY).status == LAUNCHED


def test_failed_delete_is_not_lost_by_later_note_save(reconciler, store):
    reconciler.click("proj1", "lezhin", CAT, PRIMARY)
    assert store.first(LaunchStatus, key=KEY).status == LAUNCHED

    store.fail_writes = True
    assert reconciler.click("proj1", "lezhin", CAT, PRIMARY).status == NONE
    store.fail_writes = False

    reconciler.save_note("proj1", "lezhin", CAT, "memo")
    reconciler.outbox.flush()

    [record] = store.find(LaunchStatus, key=KEY)
    assert (record.status, record.note) == (NONE, "memo")
    assert reconciler.resolve("proj1", "lezhin", CAT).status == NONE
    assert len(reconciler.outbox) == 0


# -----------------------
# 전체 저장
# -----------------------
def test_bulk_save_single_record(store):
    r = StatusReconciler(store)
    r.statuses = {"p1::cat::plat": LAUNCHED}
    r.notes = {}

    result = r.save_all()

    assert result.applied == ["p1::cat::plat"]
    [record] = store.find(LaunchStatus)
    assert record.key == "p1::cat::plat"
    assert (record.status, record.note) == (LAUNCHED, "")
    assert (record.project_id, record.category, record.platform_id) == ("p1", "cat", "plat")


def test_bulk_save_skips_defaults_and_parses_legacy_keys(store):
    r = StatusReconciler(store)
    r.statuses = {"p1::cat::a": NONE, "p1-naver-series": PENDING}
    r.notes = {"p1::cat::a": "  ", "p1::cat::b": "메모"}

    result = r.save_all()

    assert sorted(result.applied) == ["p1-naver-series", "p1::cat::b"]
    legacy = store.first(LaunchStatus, key="p1-naver-series")
    assert (legacy.project_id, legacy.platform_id, legacy.category) == ("p1", "naver-series", None)
    note_only = store.first(LaunchStatus, key="p1::cat::b")
    assert (note_only.status, note_only.note) == (NONE, "메모")


def test_bulk_save_updates_existing_record(reconciler, store):
    reconciler.click("proj1", "lezhin", CAT, PRIMARY)
    reconciler.notes[KEY] = "확인"
    reconciler.save_all()
    [record] = store.find(LaunchStatus)
    assert (record.status, record.note) == (LAUNCHED, "확인")


# -----------------------
# 구독
# -----------------------
def test_snapshot_replaces_local_maps(reconciler, store):
    reconciler.statuses["stale::x::y"] = LAUNCHED
    store.add(LaunchStatus(key=KEY, project_id="proj1", platform_id="lezhin", category=CAT, status=PENDING))
    assert reconciler.statuses == {KEY: PENDING}
    assert reconciler.loading_statuses is False


def test_detach_stops_updates(reconciler, store):
    reconciler.detach()
    store.add(LaunchStatus(key=KEY, project_id="proj1", platform_id="lezhin", category=CAT, status=PENDING))
    assert KEY not in reconciler.statuses
    assert store.listener_count(LaunchStatus) == 0


def test_snapshot_error_clears_loading_flag(store, monkeypatch):
    def boom(model):
        raise StoreError("read failed")

    monkeypatch.setattr(store, "snapshot", boom)
    r = StatusReconciler(store)
    r.attach()
    assert r.loading_statuses is False
    assert r.loading_projects is False
    assert r.statuses == {}


# -----------------------
# 삭제
# -----------------------
def test_delete_platform_removes_all_its_records(reconciler, store):
    reconciler.click("proj1", "lezhin", CAT, PRIMARY)
    reconciler.click("proj1", "lezhin-japan", "해외비독점 [라이브]", PRIMARY)
    store.add(LaunchStatus(key="proj2-lezhin", project_id="proj2", platform_id="lezhin", status=LAUNCHED))

    removed = reconciler.delete_platform("lezhin")

    assert sorted(removed) == sorted([KEY, "proj2-lezhin"])
    assert keys_in_store(store) == ["proj1::해외비독점 [라이브]::lezhin-japan"]
    assert reconciler.catalog.find("lezhin") is None


def test_delete_platform_drops_unsaved_local_notes(reconciler, store):
    store.fail_writes = True
    reconciler.save_note("proj3", "lezhin", CAT, "미반영 메모")
    store.fail_writes = False
    note_key = "proj3::국내비독점 [라이브]::lezhin"
    assert note_key in reconciler.notes and note_key not in reconciler.statuses

    assert reconciler.delete_platform("lezhin") == [note_key]
    assert note_key not in reconciler.notes
    assert len(reconciler.outbox) == 0
    reconciler.outbox.flush()
    assert keys_in_store(store) == []


def test_delete_launch_project(reconciler, store):
    lp = store.add(LaunchProject(title="작품A", category=CAT))
    reconciler.statuses[f"{lp.id}-lezhin"] = LAUNCHED
    assert reconciler.delete_launch_project(lp.id) is True
    assert f"{lp.id}-lezhin" not in reconciler.statuses
    assert reconciler.launch_projects == []
    assert reconciler.delete_launch_project(lp.id) is False

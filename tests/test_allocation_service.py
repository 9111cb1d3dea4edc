from __future__ import annotations

import threading
import time
from dataclasses import replace

import pytest

from seat_allocation.domain.errors import StorageError, TransactionError
from seat_allocation.repository.allocation_store import AllocationRecordStore
from seat_allocation.repository.class_catalog import ClassCatalog
from seat_allocation.repository.database import Database
from seat_allocation.repository.room_catalog import RoomCatalog
from seat_allocation.services.allocation_service import SeatAllocationService
from seat_allocation.utils.config import get_settings


TARGET_DATE = "2026-03-02"


def _build_test_settings(tmp_path, filename: str, **overrides):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, **overrides)


def _build_service(tmp_path, filename: str, **overrides):
    settings = _build_test_settings(tmp_path, filename, **overrides)
    database = Database(settings)
    database.initialize_database()
    service = SeatAllocationService.from_settings(settings, database=database)
    return service, database, settings


def _add_rooms(database: Database, settings, capacities, levels=None) -> list[int]:
    catalog = RoomCatalog(database)
    rules = settings.allocation_rules()
    levels = levels or [None] * len(capacities)
    return [
        catalog.create_room(f"R-{index}", f"Room {index}", capacity, rules, academic_level=level)
        for index, (capacity, level) in enumerate(zip(capacities, levels), start=1)
    ]


def _add_classes(database: Database, settings, strengths, level: str = "UG") -> list[int]:
    catalog = ClassCatalog(database)
    rules = settings.allocation_rules()
    return [
        catalog.create_class(f"Class {index}", 1, level, strength, rules)
        for index, strength in enumerate(strengths, start=1)
    ]


def _placements(store: AllocationRecordStore, shift: str = "morning") -> set[tuple[int, int, int]]:
    return {
        (record.class_id, record.room_id, record.total_allocated_seats)
        for record in store.list_by_key(TARGET_DATE, shift)
    }


def test_two_classes_two_exact_rooms(tmp_path):
    service, database, settings = _build_service(tmp_path, "exact.db")
    room_a, room_b = _add_rooms(database, settings, [20, 30])
    class_1, class_2 = _add_classes(database, settings, [30, 20])

    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is True
    assert result.partial is False
    assert result.errors == []
    assert result.statistics.total_classes == 2
    assert result.statistics.allocated_classes == 2
    assert result.statistics.total_rooms_used == 2
    assert result.statistics.total_students_allocated == 50
    store = AllocationRecordStore(database)
    assert _placements(store) == {(class_1, room_b, 30), (class_2, room_a, 20)}
    assert all(record.is_confirmed for record in store.list_by_key(TARGET_DATE, "morning"))


def test_result_serializes_to_documented_shape(tmp_path):
    service, database, settings = _build_service(tmp_path, "shape.db")
    _add_rooms(database, settings, [40])
    _add_classes(database, settings, [35])

    payload = service.allocate(TARGET_DATE, "morning").to_dict()

    assert set(payload) >= {"success", "message", "statistics", "errors"}
    detail = payload["statistics"]["allocation_details"][0]
    assert detail == {
        "class": "Class 1",
        "department_id": 1,
        "academic_level": "UG",
        "strength": 35,
        "room": "Room 1",
        "room_capacity": 40,
        "students_allocated": 35,
    }


def test_unplaceable_class_rolls_back_everything(tmp_path):
    service, database, settings = _build_service(tmp_path, "rollback.db")
    _add_rooms(database, settings, [20])
    _add_classes(database, settings, [25])

    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is False
    assert result.statistics.unallocated_classes == 1
    assert result.errors == ["No available rooms for class: Class 1"]
    assert AllocationRecordStore(database).count() == 0


def test_failed_rerun_keeps_previous_records(tmp_path):
    service, database, settings = _build_service(tmp_path, "keep_previous.db")
    _add_rooms(database, settings, [50])
    _add_classes(database, settings, [50])
    assert service.allocate(TARGET_DATE, "morning").success
    store = AllocationRecordStore(database)
    before = _placements(store)

    _add_classes(database, settings, [10])
    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is False
    assert result.statistics.allocated_classes == 1
    assert result.statistics.unallocated_classes == 1
    assert _placements(store) == before


def test_largest_class_wins_the_only_room(tmp_path):
    service, database, settings = _build_service(
        tmp_path,
        "largest_first.db",
        allocation_allow_partial_allocations=True,
    )
    (room_id,) = _add_rooms(database, settings, [50])
    big_id, _ = _add_classes(database, settings, [50, 10])

    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is True
    assert result.partial is True
    assert result.errors == ["No available rooms for class: Class 2"]
    assert _placements(AllocationRecordStore(database)) == {(big_id, room_id, 50)}


def test_rerun_is_idempotent(tmp_path):
    service, database, settings = _build_service(tmp_path, "idempotent.db")
    _add_rooms(database, settings, [25, 30, 40, 60, 45])
    _add_classes(database, settings, [58, 40, 30, 22])
    store = AllocationRecordStore(database)

    first = service.allocate(TARGET_DATE, "morning")
    first_records = _placements(store)
    second = service.allocate(TARGET_DATE, "morning")

    assert first.success and second.success
    assert _placements(store) == first_records
    assert store.count() == 4


def test_shifts_are_allocated_independently(tmp_path):
    service, database, settings = _build_service(tmp_path, "shifts.db")
    _add_rooms(database, settings, [30])
    _add_classes(database, settings, [30])
    store = AllocationRecordStore(database)

    assert service.allocate(TARGET_DATE, "morning").success
    assert service.allocate(TARGET_DATE, "afternoon").success

    assert len(store.list_by_key(TARGET_DATE, "morning")) == 1
    assert len(store.list_by_key(TARGET_DATE, "afternoon")) == 1


def test_strict_level_separation_respects_room_designation(tmp_path):
    service, database, settings = _build_service(tmp_path, "levels.db")
    pg_room, open_room = _add_rooms(database, settings, [30, 40], levels=["PG", None])
    (ug_class,) = _add_classes(database, settings, [30], level="UG")

    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is True
    assert _placements(AllocationRecordStore(database)) == {(ug_class, open_room, 30)}
    assert pg_room != open_room


def test_invalid_shift_returns_structured_failure(tmp_path):
    service, database, settings = _build_service(tmp_path, "bad_shift.db")
    _add_rooms(database, settings, [30])
    _add_classes(database, settings, [30])

    result = service.allocate(TARGET_DATE, "evening")

    assert result.success is False
    assert result.message == "Invalid input parameters"
    assert result.errors
    assert AllocationRecordStore(database).count() == 0


def test_invalid_date_never_opens_transaction(tmp_path, monkeypatch):
    service, database, _ = _build_service(tmp_path, "bad_date.db")

    def _fail_transaction():
        raise AssertionError("transaction must not be opened")

    monkeypatch.setattr(database, "transaction", _fail_transaction)
    result = service.allocate("2026-02-30", "morning")

    assert result.success is False
    assert result.message == "Invalid input parameters"


def test_no_eligible_classes_clears_key(tmp_path):
    service, database, settings = _build_service(tmp_path, "no_classes.db")
    _add_rooms(database, settings, [30])
    (class_id,) = _add_classes(database, settings, [30])
    assert service.allocate(TARGET_DATE, "morning").success

    with database.session() as conn:
        conn.execute("UPDATE Classes SET is_active = 0 WHERE id = ?;", (class_id,))
    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is False
    assert result.message == "No eligible classes found for allocation"
    assert result.statistics.total_classes == 0
    assert AllocationRecordStore(database).count() == 0


def test_no_rooms_fails_every_class(tmp_path):
    service, database, settings = _build_service(tmp_path, "no_rooms.db")
    _add_classes(database, settings, [30, 20])

    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is False
    assert result.statistics.unallocated_classes == 2
    assert len(result.errors) == 2


def test_storage_failure_mid_run_rolls_back(tmp_path, monkeypatch):
    service, database, settings = _build_service(tmp_path, "storage_failure.db")
    _add_rooms(database, settings, [30, 40])
    _add_classes(database, settings, [30, 40])
    assert service.allocate(TARGET_DATE, "morning").success
    store = AllocationRecordStore(database)
    before = _placements(store)

    calls = {"count": 0}
    original_create = AllocationRecordStore.create

    def _flaky_create(self, record, connection=None):
        calls["count"] += 1
        if calls["count"] == 2:
            raise StorageError("disk full")
        return original_create(self, record, connection=connection)

    monkeypatch.setattr(AllocationRecordStore, "create", _flaky_create)
    result = service.allocate(TARGET_DATE, "morning")

    assert result.success is False
    assert result.message == "Storage failure during allocation"
    assert result.errors == ["disk full"]
    assert _placements(store) == before


def test_transaction_open_failure_propagates(tmp_path, monkeypatch):
    service, database, settings = _build_service(tmp_path, "tx_failure.db")
    _add_rooms(database, settings, [30])
    _add_classes(database, settings, [30])

    def _broken_transaction():
        raise TransactionError("database locked")

    monkeypatch.setattr(database, "transaction", _broken_transaction)
    with pytest.raises(TransactionError):
        service.allocate(TARGET_DATE, "morning")


def test_concurrent_run_times_out_behind_open_transaction(tmp_path):
    service, database, settings = _build_service(
        tmp_path,
        "locked.db",
        database_timeout_seconds=0.2,
    )
    _add_rooms(database, settings, [30])
    _add_classes(database, settings, [30])

    with database.transaction():
        with pytest.raises(TransactionError, match="database is locked"):
            service.allocate(TARGET_DATE, "morning")

    assert AllocationRecordStore(database).count() == 0


def test_concurrent_run_waits_for_lock_release(tmp_path):
    service, database, settings = _build_service(
        tmp_path,
        "waits.db",
        database_timeout_seconds=5.0,
    )
    _add_rooms(database, settings, [30])
    (class_id,) = _add_classes(database, settings, [30])
    held = threading.Event()

    def _hold_write_lock():
        with database.transaction():
            held.set()
            time.sleep(0.3)

    holder = threading.Thread(target=_hold_write_lock)
    holder.start()
    assert held.wait(timeout=5)
    started = time.monotonic()
    result = service.allocate(TARGET_DATE, "morning")
    waited = time.monotonic() - started
    holder.join()

    assert result.success is True
    assert waited >= 0.2
    records = AllocationRecordStore(database).list_by_key(TARGET_DATE, "morning")
    assert [record.class_id for record in records] == [class_id]


def test_datetime_string_is_keyed_by_calendar_day(tmp_path):
    service, database, settings = _build_service(tmp_path, "datetime_key.db")
    _add_rooms(database, settings, [30])
    _add_classes(database, settings, [30])

    result = service.allocate("2026-03-02T09:00:00", "morning")

    assert result.success is True
    assert result.exam_date == TARGET_DATE
    assert len(AllocationRecordStore(database).list_by_key(TARGET_DATE, "morning")) == 1


def test_records_carry_exam_and_creator(tmp_path):
    service, database, settings = _build_service(tmp_path, "exam_ids.db")
    _add_rooms(database, settings, [30])
    _add_classes(database, settings, [30])

    service.allocate(TARGET_DATE, "morning", exam_id=7, created_by=42)

    (record,) = AllocationRecordStore(database).list_by_key(TARGET_DATE, "morning")
    assert record.exam_id == 7
    assert record.created_by == 42


def test_allocation_summary_reports_confirmed_records(tmp_path):
    service, database, settings = _build_service(tmp_path, "summary.db")
    _add_rooms(database, settings, [20, 30, 45])
    _add_classes(database, settings, [30, 20, 40])
    service.allocate(TARGET_DATE, "morning", exam_id=3)

    summary = service.get_allocation_summary(3, "morning")

    assert summary.statistics.count == 3
    assert summary.statistics.total_seats == 90
    assert summary.statistics.distinct_rooms == 3
    assert summary.statistics.avg_seats_per_room == pytest.approx(30.0)
    assert len(summary.allocations) == 3


def test_rules_are_validated_on_construction(tmp_path):
    settings = _build_test_settings(tmp_path, "bad_rules.db", min_class_strength=0)
    with pytest.raises(ValueError):
        SeatAllocationService.from_settings(settings)

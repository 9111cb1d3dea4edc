"""Allocation engine: validates a run, regenerates its records atomically.

A run moves through ``VALIDATING -> TRANSACTION_OPEN -> CLEARED ->
ALLOCATING -> COMMITTING | ROLLING_BACK -> DONE``. Everything after the
transaction opens either commits as a unit or is rolled back, including
the deletion of the previous records for the same (date, shift).
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional, Union

from seat_allocation.domain.constraints import (
    AllocationRules,
    validate_allocation_rules,
    validate_run_inputs,
)
from seat_allocation.domain.errors import AllocationValidationError, StorageError
from seat_allocation.domain.models import AllocationRecord
from seat_allocation.repository.allocation_store import AllocationRecordStore
from seat_allocation.repository.class_catalog import ClassCatalog
from seat_allocation.repository.database import Database, Transaction
from seat_allocation.repository.room_catalog import RoomCatalog
from seat_allocation.services.matching_service import MatchingResult, match_classes_to_rooms
from seat_allocation.services.schemas import (
    AllocationDetail,
    AllocationRecordResponse,
    AllocationRunResult,
    AllocationStatistics,
    AllocationSummary,
    StoreStatisticsResponse,
)
from seat_allocation.utils.config import Settings
from seat_allocation.utils.logger import get_logger


logger = get_logger(__name__)


class RunState(str, Enum):
    VALIDATING = "validating"
    TRANSACTION_OPEN = "transaction_open"
    CLEARED = "cleared"
    ALLOCATING = "allocating"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"
    DONE = "done"


def build_statistics(matching: MatchingResult, total_classes: int) -> AllocationStatistics:
    return AllocationStatistics(
        total_classes=total_classes,
        allocated_classes=len(matching.placements),
        unallocated_classes=len(matching.failures),
        total_rooms_used=matching.rooms_used,
        total_students_allocated=matching.students_allocated,
        allocation_details=[
            AllocationDetail.from_placement(placement)
            for placement in matching.placements
        ],
    )


class SeatAllocationService:
    """Runs the allocation for one (date, shift) key at a time.

    All policy arrives through ``rules``; the service reads no process-wide
    settings, so two instances with different rules behave independently.
    """

    def __init__(
        self,
        database: Database,
        rules: AllocationRules,
        room_catalog: Optional[RoomCatalog] = None,
        class_catalog: Optional[ClassCatalog] = None,
        allocation_store: Optional[AllocationRecordStore] = None,
        default_exam_id: int = 1,
        default_created_by: Optional[int] = None,
    ) -> None:
        validate_allocation_rules(rules)
        self._database = database
        self._rules = rules
        self._rooms = room_catalog or RoomCatalog(database)
        self._classes = class_catalog or ClassCatalog(database)
        self._store = allocation_store or AllocationRecordStore(database)
        self._default_exam_id = default_exam_id
        self._default_created_by = default_created_by

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        database: Optional[Database] = None,
    ) -> "SeatAllocationService":
        return cls(
            database=database or Database(settings),
            rules=settings.allocation_rules(),
            default_exam_id=settings.default_exam_id,
            default_created_by=settings.default_created_by,
        )

    @property
    def rules(self) -> AllocationRules:
        return self._rules

    def _enter(self, state: RunState, exam_date: str, shift: str) -> None:
        logger.debug("Run state | date=%s | shift=%s | state=%s", exam_date, shift, state.value)

    def allocate(
        self,
        exam_date: Union[str, date],
        shift: str,
        exam_id: Optional[int] = None,
        created_by: Optional[int] = None,
    ) -> AllocationRunResult:
        """Regenerate the allocation records for ``(exam_date, shift)``.

        Returns a structured result for validation, placement and storage
        failures. ``TransactionError`` is the only exception raised.
        """
        self._enter(RunState.VALIDATING, str(exam_date), shift)
        try:
            run_date = validate_run_inputs(exam_date, shift, self._rules).isoformat()
        except AllocationValidationError as exc:
            logger.warning(
                "Invalid input parameters | date=%s | shift=%s | reason=%s",
                exam_date,
                shift,
                exc,
            )
            return AllocationRunResult(
                message="Invalid input parameters",
                exam_date=str(exam_date),
                shift=shift,
                errors=[str(exc)],
            )

        resolved_exam_id = exam_id if exam_id is not None else self._default_exam_id
        resolved_created_by = created_by if created_by is not None else self._default_created_by
        logger.info("Allocation started | date=%s | shift=%s", run_date, shift)

        with self._database.transaction() as transaction:
            self._enter(RunState.TRANSACTION_OPEN, run_date, shift)
            result = self._run_in_transaction(
                transaction,
                run_date,
                shift,
                resolved_exam_id,
                resolved_created_by,
            )

        self._enter(RunState.DONE, run_date, shift)
        return result

    def _run_in_transaction(
        self,
        transaction: Transaction,
        run_date: str,
        shift: str,
        exam_id: int,
        created_by: Optional[int],
    ) -> AllocationRunResult:
        connection = transaction.connection
        try:
            deleted = self._store.delete_by_key(run_date, shift, connection=connection)
            self._enter(RunState.CLEARED, run_date, shift)
            logger.debug("Previous allocations removed | count=%s", deleted)

            self._enter(RunState.ALLOCATING, run_date, shift)
            classes = self._classes.list_eligible(connection=connection)
            rooms = self._rooms.list_available(connection=connection)
            matching = match_classes_to_rooms(classes, rooms, self._rules)
            for placement in matching.placements:
                self._store.create(
                    AllocationRecord(
                        exam_id=exam_id,
                        class_id=placement.exam_class.class_id,
                        room_id=placement.room.room_id,
                        allocated_date=run_date,
                        shift=shift,
                        total_allocated_seats=placement.seats,
                        is_confirmed=True,
                        created_by=created_by,
                    ),
                    connection=connection,
                )
        except StorageError as exc:
            self._enter(RunState.ROLLING_BACK, run_date, shift)
            transaction.rollback()
            logger.error(
                "Allocation rolled back on storage failure | date=%s | shift=%s | error=%s",
                run_date,
                shift,
                exc,
            )
            return AllocationRunResult(
                message="Storage failure during allocation",
                exam_date=run_date,
                shift=shift,
                errors=[str(exc)],
            )

        statistics = build_statistics(matching, total_classes=len(classes))
        errors = [str(failure) for failure in matching.failures]

        if not classes:
            self._enter(RunState.COMMITTING, run_date, shift)
            transaction.commit()
            logger.info("No eligible classes found | date=%s | shift=%s", run_date, shift)
            return AllocationRunResult(
                success=False,
                message="No eligible classes found for allocation",
                exam_date=run_date,
                shift=shift,
                statistics=statistics,
            )

        if errors and not self._rules.allow_partial_allocations:
            self._enter(RunState.ROLLING_BACK, run_date, shift)
            transaction.rollback()
            logger.error(
                "Allocation failed; rolled back | date=%s | shift=%s | unplaced=%s",
                run_date,
                shift,
                len(errors),
            )
            return AllocationRunResult(
                message="Allocation failed",
                exam_date=run_date,
                shift=shift,
                statistics=statistics,
                errors=errors,
            )

        self._enter(RunState.COMMITTING, run_date, shift)
        transaction.commit()
        partial = bool(errors)
        logger.info(
            (
                "Allocation committed | date=%s | shift=%s | allocated=%s | "
                "unallocated=%s | rooms_used=%s | students=%s"
            ),
            run_date,
            shift,
            statistics.allocated_classes,
            statistics.unallocated_classes,
            statistics.total_rooms_used,
            statistics.total_students_allocated,
        )
        return AllocationRunResult(
            success=True,
            partial=partial,
            message=(
                "Allocation partially completed"
                if partial
                else "Allocation completed successfully"
            ),
            exam_date=run_date,
            shift=shift,
            statistics=statistics,
            errors=errors,
        )

    def get_allocation_summary(self, exam_id: int, shift: str) -> AllocationSummary:
        """Confirmed-record statistics and the record list for one exam shift."""
        stats = self._store.statistics(exam_id, shift)
        records = self._store.list_by_exam_and_shift(exam_id, shift)
        return AllocationSummary(
            exam_id=exam_id,
            shift=shift,
            statistics=StoreStatisticsResponse.from_statistics(stats),
            allocations=[AllocationRecordResponse.from_record(record) for record in records],
        )

"""Persistence for allocation records.

Records are create-or-delete: a run regenerates every record for its
(date, shift) key and never updates a row in place.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from seat_allocation.domain.errors import StorageError
from seat_allocation.domain.models import AllocationRecord, AllocationStoreStatistics
from seat_allocation.repository.database import Database
from seat_allocation.utils.logger import get_logger


logger = get_logger(__name__)

_ALLOCATION_COLUMNS = """
    id,
    exam_id,
    class_id,
    room_id,
    allocated_date,
    shift,
    total_allocated_seats,
    is_confirmed,
    created_by,
    created_at,
    updated_at
"""


def row_to_allocation(row: sqlite3.Row) -> AllocationRecord:
    """Single deserialization routine shared by every allocation query."""
    return AllocationRecord(
        allocation_id=int(row["id"]),
        exam_id=int(row["exam_id"]),
        class_id=int(row["class_id"]),
        room_id=int(row["room_id"]),
        allocated_date=str(row["allocated_date"]),
        shift=str(row["shift"]),
        total_allocated_seats=int(row["total_allocated_seats"]),
        is_confirmed=bool(row["is_confirmed"]),
        created_by=int(row["created_by"]) if row["created_by"] is not None else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class AllocationRecordStore:
    def __init__(self, database: Database) -> None:
        self._database = database

    def _query(
        self,
        sql: str,
        params: tuple = (),
        connection: Optional[sqlite3.Connection] = None,
    ) -> list[AllocationRecord]:
        try:
            with self._database.session(connection) as conn:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                return [row_to_allocation(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise StorageError(f"Allocation query failed: {exc}") from exc

    def _execute(
        self,
        sql: str,
        params: tuple,
        connection: Optional[sqlite3.Connection] = None,
    ) -> sqlite3.Cursor:
        try:
            with self._database.session(connection) as conn:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                return cursor
        except sqlite3.Error as exc:
            raise StorageError(f"Allocation write failed: {exc}") from exc

    def create(
        self,
        record: AllocationRecord,
        connection: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Insert ``record`` and return the new allocation id."""
        if record.total_allocated_seats <= 0:
            raise StorageError("total_allocated_seats must be > 0")
        cursor = self._execute(
            """
            INSERT INTO Allocations (
                exam_id,
                class_id,
                room_id,
                allocated_date,
                shift,
                total_allocated_seats,
                is_confirmed,
                created_by
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                record.exam_id,
                record.class_id,
                record.room_id,
                record.allocated_date,
                record.shift,
                record.total_allocated_seats,
                1 if record.is_confirmed else 0,
                record.created_by,
            ),
            connection=connection,
        )
        return int(cursor.lastrowid)

    def delete_by_key(
        self,
        allocated_date: str,
        shift: str,
        connection: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Remove every record for (date, shift); returns the deleted row count."""
        cursor = self._execute(
            "DELETE FROM Allocations WHERE allocated_date = ? AND shift = ?;",
            (allocated_date, shift),
            connection=connection,
        )
        deleted = max(cursor.rowcount, 0)
        logger.debug(
            "Allocations cleared | date=%s | shift=%s | deleted=%s",
            allocated_date,
            shift,
            deleted,
        )
        return deleted

    def delete_by_exam_and_shift(self, exam_id: int, shift: str) -> int:
        cursor = self._execute(
            "DELETE FROM Allocations WHERE exam_id = ? AND shift = ?;",
            (exam_id, shift),
        )
        return max(cursor.rowcount, 0)

    def delete(self, allocation_id: int) -> bool:
        cursor = self._execute(
            "DELETE FROM Allocations WHERE id = ?;",
            (allocation_id,),
        )
        return cursor.rowcount > 0

    def list_by_key(
        self,
        allocated_date: str,
        shift: str,
        connection: Optional[sqlite3.Connection] = None,
    ) -> list[AllocationRecord]:
        return self._query(
            f"""
            SELECT {_ALLOCATION_COLUMNS}
            FROM Allocations
            WHERE allocated_date = ? AND shift = ?
            ORDER BY id ASC;
            """,
            (allocated_date, shift),
            connection=connection,
        )

    def list_by_exam_and_shift(self, exam_id: int, shift: str) -> list[AllocationRecord]:
        return self._query(
            f"""
            SELECT {_ALLOCATION_COLUMNS}
            FROM Allocations
            WHERE exam_id = ? AND shift = ?
            ORDER BY created_at DESC, id DESC;
            """,
            (exam_id, shift),
        )

    def list_by_room(self, room_id: int) -> list[AllocationRecord]:
        return self._query(
            f"""
            SELECT {_ALLOCATION_COLUMNS}
            FROM Allocations
            WHERE room_id = ?
            ORDER BY created_at DESC, id DESC;
            """,
            (room_id,),
        )

    def get_by_exam_and_room(self, exam_id: int, room_id: int) -> Optional[AllocationRecord]:
        records = self._query(
            f"""
            SELECT {_ALLOCATION_COLUMNS}
            FROM Allocations
            WHERE exam_id = ? AND room_id = ?
            ORDER BY id DESC
            LIMIT 1;
            """,
            (exam_id, room_id),
        )
        return records[0] if records else None

    def sum_allocated_seats(self, exam_id: int, shift: str) -> int:
        """Total confirmed seats for an exam shift."""
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    SELECT SUM(total_allocated_seats) AS total
                    FROM Allocations
                    WHERE exam_id = ? AND shift = ? AND is_confirmed = 1;
                    """,
                    (exam_id, shift),
                )
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Allocated seat query failed: {exc}") from exc
        if row is None or row["total"] is None:
            return 0
        return int(row["total"])

    def statistics(self, exam_id: int, shift: str) -> AllocationStoreStatistics:
        """Aggregate confirmed records for reporting collaborators."""
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    SELECT
                        COUNT(*) AS total_allocations,
                        SUM(total_allocated_seats) AS total_seats,
                        COUNT(DISTINCT room_id) AS distinct_rooms,
                        AVG(total_allocated_seats) AS avg_seats
                    FROM Allocations
                    WHERE exam_id = ? AND shift = ? AND is_confirmed = 1;
                    """,
                    (exam_id, shift),
                )
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Allocation statistics query failed: {exc}") from exc
        return AllocationStoreStatistics(
            count=int(row["total_allocations"] or 0),
            total_seats=int(row["total_seats"] or 0),
            distinct_rooms=int(row["distinct_rooms"] or 0),
            avg_seats_per_room=float(row["avg_seats"] or 0.0),
        )

    def count(self) -> int:
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Allocations;")
                return int(cursor.fetchone()["count"])
        except sqlite3.Error as exc:
            raise StorageError(f"Allocation count query failed: {exc}") from exc

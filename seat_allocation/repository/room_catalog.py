"""Read-mostly access to examination rooms."""

from __future__ import annotations

import sqlite3
from typing import Optional

from seat_allocation.domain.constraints import AllocationRules, validate_room
from seat_allocation.domain.errors import StorageError
from seat_allocation.domain.models import Room
from seat_allocation.repository.database import Database
from seat_allocation.utils.logger import get_logger


logger = get_logger(__name__)

_ROOM_COLUMNS = """
    id,
    room_code,
    room_name,
    capacity,
    room_type,
    building_name,
    floor_number,
    academic_level,
    is_active
"""


def row_to_room(row: sqlite3.Row) -> Room:
    """Single deserialization routine shared by every room query."""
    return Room(
        room_id=int(row["id"]),
        room_code=str(row["room_code"]),
        room_name=str(row["room_name"]),
        capacity=int(row["capacity"]),
        room_type=str(row["room_type"]),
        building_name=row["building_name"],
        floor_number=(
            int(row["floor_number"]) if row["floor_number"] is not None else None
        ),
        academic_level=row["academic_level"],
        is_active=bool(row["is_active"]),
    )


class RoomCatalog:
    """Room queries; every list is ordered by ascending capacity."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def _query(
        self,
        sql: str,
        params: tuple = (),
        connection: Optional[sqlite3.Connection] = None,
    ) -> list[Room]:
        try:
            with self._database.session(connection) as conn:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                return [row_to_room(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise StorageError(f"Room catalog query failed: {exc}") from exc

    def list_available(
        self,
        connection: Optional[sqlite3.Connection] = None,
    ) -> list[Room]:
        """Return active rooms, smallest first."""
        return self._query(
            f"""
            SELECT {_ROOM_COLUMNS}
            FROM Rooms
            WHERE is_active = 1
            ORDER BY capacity ASC, id ASC;
            """,
            connection=connection,
        )

    def list_for_minimum_capacity(
        self,
        strength: int,
        connection: Optional[sqlite3.Connection] = None,
    ) -> list[Room]:
        """Return active rooms that can seat ``strength`` students."""
        return self._query(
            f"""
            SELECT {_ROOM_COLUMNS}
            FROM Rooms
            WHERE is_active = 1 AND capacity >= ?
            ORDER BY capacity ASC, id ASC;
            """,
            (strength,),
            connection=connection,
        )

    def list_by_capacity_range(self, min_capacity: int, max_capacity: int) -> list[Room]:
        return self._query(
            f"""
            SELECT {_ROOM_COLUMNS}
            FROM Rooms
            WHERE is_active = 1 AND capacity BETWEEN ? AND ?
            ORDER BY capacity ASC, id ASC;
            """,
            (min_capacity, max_capacity),
        )

    def list_by_building(self, building_name: str) -> list[Room]:
        return self._query(
            f"""
            SELECT {_ROOM_COLUMNS}
            FROM Rooms
            WHERE building_name = ? AND is_active = 1
            ORDER BY capacity ASC, id ASC;
            """,
            (building_name,),
        )

    def get_room(self, room_id: int) -> Optional[Room]:
        rooms = self._query(
            f"SELECT {_ROOM_COLUMNS} FROM Rooms WHERE id = ?;",
            (room_id,),
        )
        return rooms[0] if rooms else None

    def total_capacity(self) -> int:
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT SUM(capacity) AS total FROM Rooms WHERE is_active = 1;"
                )
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Room capacity query failed: {exc}") from exc
        if row is None or row["total"] is None:
            return 0
        return int(row["total"])

    def create_room(
        self,
        room_code: str,
        room_name: str,
        capacity: int,
        rules: AllocationRules,
        room_type: str = "Classroom",
        building_name: Optional[str] = None,
        floor_number: Optional[int] = None,
        academic_level: Optional[str] = None,
    ) -> int:
        """Insert a validated room row and return the created id."""
        validate_room(
            Room(
                room_id=0,
                room_code=room_code,
                room_name=room_name,
                capacity=capacity,
                room_type=room_type,
                building_name=building_name,
                floor_number=floor_number,
                academic_level=academic_level,
            ),
            rules,
        )
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO Rooms (
                        room_code,
                        room_name,
                        capacity,
                        room_type,
                        building_name,
                        floor_number,
                        academic_level
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        room_code,
                        room_name,
                        capacity,
                        room_type,
                        building_name,
                        floor_number,
                        academic_level,
                    ),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise StorageError(f"Room creation failed: {exc}") from exc

    def set_room_active(self, room_id: int, is_active: bool) -> bool:
        """Toggle availability; returns False when the room does not exist."""
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE Rooms
                    SET is_active = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?;
                    """,
                    (1 if is_active else 0, room_id),
                )
                updated = cursor.rowcount > 0
        except sqlite3.Error as exc:
            raise StorageError(f"Room status update failed: {exc}") from exc
        logger.info("Room status updated | room_id=%s | is_active=%s", room_id, is_active)
        return updated

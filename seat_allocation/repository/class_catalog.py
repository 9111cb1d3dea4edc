"""Read-mostly access to examination classes."""

from __future__ import annotations

import sqlite3
from typing import Optional

from seat_allocation.domain.constraints import AllocationRules, validate_exam_class
from seat_allocation.domain.errors import StorageError
from seat_allocation.domain.models import ExamClass
from seat_allocation.repository.database import Database


_CLASS_COLUMNS = """
    id,
    class_name,
    department_id,
    academic_level,
    academic_year,
    total_students,
    is_active
"""


def row_to_exam_class(row: sqlite3.Row) -> ExamClass:
    """Single deserialization routine shared by every class query."""
    return ExamClass(
        class_id=int(row["id"]),
        class_name=str(row["class_name"]),
        department_id=int(row["department_id"]),
        academic_level=str(row["academic_level"]),
        strength=int(row["total_students"]),
        academic_year=(
            int(row["academic_year"]) if row["academic_year"] is not None else None
        ),
        is_active=bool(row["is_active"]),
    )


class ClassCatalog:
    """Class queries ordered by descending strength.

    Largest classes come first so they claim the large rooms they need.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def _query(
        self,
        sql: str,
        params: tuple = (),
        connection: Optional[sqlite3.Connection] = None,
    ) -> list[ExamClass]:
        try:
            with self._database.session(connection) as conn:
                cursor = conn.cursor()
                cursor.execute(sql, params)
                return [row_to_exam_class(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise StorageError(f"Class catalog query failed: {exc}") from exc

    def list_eligible(
        self,
        connection: Optional[sqlite3.Connection] = None,
    ) -> list[ExamClass]:
        """Return active classes with at least one student, largest first."""
        return self._query(
            f"""
            SELECT {_CLASS_COLUMNS}
            FROM Classes
            WHERE is_active = 1 AND total_students > 0
            ORDER BY total_students DESC, id ASC;
            """,
            connection=connection,
        )

    def list_by_department(self, department_id: int) -> list[ExamClass]:
        return self._query(
            f"""
            SELECT {_CLASS_COLUMNS}
            FROM Classes
            WHERE department_id = ? AND is_active = 1
            ORDER BY total_students DESC, id ASC;
            """,
            (department_id,),
        )

    def list_by_academic_level(self, academic_level: str) -> list[ExamClass]:
        return self._query(
            f"""
            SELECT {_CLASS_COLUMNS}
            FROM Classes
            WHERE academic_level = ? AND is_active = 1
            ORDER BY total_students DESC, id ASC;
            """,
            (academic_level,),
        )

    def get_class(self, class_id: int) -> Optional[ExamClass]:
        classes = self._query(
            f"SELECT {_CLASS_COLUMNS} FROM Classes WHERE id = ?;",
            (class_id,),
        )
        return classes[0] if classes else None

    def total_strength(self) -> int:
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT SUM(total_students) AS total FROM Classes WHERE is_active = 1;"
                )
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Class strength query failed: {exc}") from exc
        if row is None or row["total"] is None:
            return 0
        return int(row["total"])

    def create_class(
        self,
        class_name: str,
        department_id: int,
        academic_level: str,
        strength: int,
        rules: AllocationRules,
        academic_year: Optional[int] = None,
        is_active: bool = True,
    ) -> int:
        """Insert a validated class row and return the created id."""
        validate_exam_class(
            ExamClass(
                class_id=0,
                class_name=class_name,
                department_id=department_id,
                academic_level=academic_level,
                strength=strength,
                academic_year=academic_year,
                is_active=is_active,
            ),
            rules,
        )
        try:
            with self._database.session() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO Classes (
                        class_name,
                        department_id,
                        academic_level,
                        academic_year,
                        total_students,
                        is_active
                    )
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        class_name,
                        department_id,
                        academic_level,
                        academic_year,
                        strength,
                        1 if is_active else 0,
                    ),
                )
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise StorageError(f"Class creation failed: {exc}") from exc

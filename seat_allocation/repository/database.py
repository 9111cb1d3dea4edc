"""SQLite connection factory, schema management and transaction boundary."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from seat_allocation.domain.errors import StorageError, TransactionError
from seat_allocation.utils.config import Settings, get_settings
from seat_allocation.utils.logger import get_logger


logger = get_logger(__name__)


class Transaction:
    """An open storage transaction bound to one connection.

    The owner decides between :meth:`commit` and :meth:`rollback`; a
    transaction left open when its context exits is rolled back.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        self._open = True

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    @property
    def is_open(self) -> bool:
        return self._open

    def commit(self) -> None:
        if not self._open:
            raise TransactionError("Transaction is already closed")
        try:
            self._connection.execute("COMMIT;")
        except sqlite3.Error as exc:
            self.rollback()
            raise TransactionError(f"Failed to commit transaction: {exc}") from exc
        self._open = False

    def rollback(self) -> None:
        if not self._open:
            return
        self._open = False
        try:
            self._connection.execute("ROLLBACK;")
        except sqlite3.Error as exc:
            raise TransactionError(f"Failed to roll back transaction: {exc}") from exc


class Database:
    """Owns the SQLite file and hands out connections and transactions."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def session(
        self,
        connection: Optional[sqlite3.Connection] = None,
    ) -> Iterator[sqlite3.Connection]:
        """Yield ``connection`` untouched, or a fresh autocommitting one."""
        if connection is not None:
            yield connection
            return
        owned = self.connect()
        try:
            with owned:
                yield owned
        finally:
            owned.close()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Open an immediate (write-locking) transaction.

        Concurrent runs against the same database serialise on the SQLite
        write lock; a second writer waits up to ``database_timeout_seconds``.
        """
        try:
            connection = self.connect()
        except sqlite3.Error as exc:
            raise TransactionError(f"Failed to start database transaction: {exc}") from exc
        connection.isolation_level = None
        try:
            connection.execute("BEGIN IMMEDIATE;")
        except sqlite3.Error as exc:
            connection.close()
            raise TransactionError(f"Failed to start database transaction: {exc}") from exc

        transaction = Transaction(connection)
        try:
            yield transaction
        except BaseException:
            transaction.rollback()
            raise
        finally:
            try:
                if transaction.is_open:
                    logger.warning("Transaction left open; rolling back")
                    transaction.rollback()
            finally:
                connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before the first run."""
        try:
            with self.session() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_code TEXT NOT NULL UNIQUE,
                        room_name TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        room_type TEXT NOT NULL DEFAULT 'Classroom',
                        building_name TEXT,
                        floor_number INTEGER,
                        academic_level TEXT CHECK (academic_level IN ('UG', 'PG')),
                        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Classes (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        class_name TEXT NOT NULL,
                        department_id INTEGER NOT NULL,
                        academic_level TEXT NOT NULL CHECK (academic_level IN ('UG', 'PG')),
                        academic_year INTEGER,
                        total_students INTEGER NOT NULL CHECK (total_students >= 0),
                        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Allocations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        exam_id INTEGER NOT NULL,
                        class_id INTEGER NOT NULL,
                        room_id INTEGER NOT NULL,
                        allocated_date TEXT NOT NULL,
                        shift TEXT NOT NULL,
                        total_allocated_seats INTEGER NOT NULL
                            CHECK (total_allocated_seats > 0),
                        is_confirmed INTEGER NOT NULL DEFAULT 0
                            CHECK (is_confirmed IN (0,1)),
                        created_by INTEGER,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (class_id) REFERENCES Classes(id),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_allocations_date_shift
                    ON Allocations(allocated_date, shift);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_allocations_exam_shift
                    ON Allocations(exam_id, shift);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_rooms_active_capacity
                    ON Rooms(is_active, capacity);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> int:
        """Seed deterministic rooms and classes only when both tables are empty.

        Returns the number of rows inserted.
        """
        rooms = [
            ("A-101", "Hall A101", 30, "Classroom", "Block A", 1, None),
            ("A-102", "Hall A102", 40, "Classroom", "Block A", 1, None),
            ("A-201", "Hall A201", 60, "Auditorium", "Block A", 2, None),
            ("B-101", "Hall B101", 20, "Seminar", "Block B", 1, "PG"),
            ("B-102", "Hall B102", 35, "Classroom", "Block B", 1, None),
            ("B-201", "Hall B201", 45, "Lab", "Block B", 2, "UG"),
            ("C-001", "Main Auditorium", 120, "Auditorium", "Block C", 0, None),
            ("C-101", "Hall C101", 25, "Seminar", "Block C", 1, "PG"),
        ]
        classes = [
            ("BSc CS Year 1", 1, "UG", 1, 58),
            ("BSc CS Year 2", 1, "UG", 2, 44),
            ("BCom Year 1", 2, "UG", 1, 40),
            ("BA English Year 3", 3, "UG", 3, 30),
            ("MSc CS Year 1", 1, "PG", 1, 20),
            ("MBA Year 1", 2, "PG", 1, 24),
            ("BSc Physics Year 2", 4, "UG", 2, 35),
        ]
        try:
            with self.session() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                room_count = int(cursor.fetchone()["count"])
                cursor.execute("SELECT COUNT(*) AS count FROM Classes;")
                class_count = int(cursor.fetchone()["count"])
                if room_count > 0 or class_count > 0:
                    logger.info("Demo data already present; skipping seed")
                    return 0

                cursor.executemany(
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
                    rooms,
                )
                cursor.executemany(
                    """
                    INSERT INTO Classes (
                        class_name,
                        department_id,
                        academic_level,
                        academic_year,
                        total_students
                    )
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    classes,
                )
            inserted = len(rooms) + len(classes)
            logger.info("Demo seed completed with %s records", inserted)
            return inserted
        except sqlite3.Error as exc:
            raise StorageError(f"Demo data seeding failed: {exc}") from exc

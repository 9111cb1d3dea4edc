"""Domain models for exam classes, rooms and seat allocations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ExamClass:
    class_id: int
    class_name: str
    department_id: int
    academic_level: str
    strength: int
    academic_year: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class Room:
    room_id: int
    room_code: str
    room_name: str
    capacity: int
    room_type: str = "Classroom"
    building_name: Optional[str] = None
    floor_number: Optional[int] = None
    academic_level: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class AllocationRecord:
    exam_id: int
    class_id: int
    room_id: int
    allocated_date: str
    shift: str
    total_allocated_seats: int
    is_confirmed: bool
    created_by: Optional[int] = None
    allocation_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class Placement:
    """One class matched to one room during a run."""

    exam_class: ExamClass
    room: Room
    is_exact_match: bool

    @property
    def seats(self) -> int:
        return self.exam_class.strength


@dataclass(frozen=True)
class AllocationStoreStatistics:
    count: int
    total_seats: int
    distinct_rooms: int
    avg_seats_per_room: float

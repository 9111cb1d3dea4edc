"""Domain-level validation rules for seat allocation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

from seat_allocation.domain.errors import AllocationValidationError
from seat_allocation.domain.models import ExamClass, Room


KNOWN_ACADEMIC_LEVELS = ("UG", "PG")


@dataclass(frozen=True)
class AllocationRules:
    prioritize_exact_matches: bool
    allow_partial_allocations: bool
    allow_department_mixing: bool
    strict_ug_pg_separation: bool
    strict_shift_separation: bool
    min_class_strength: int
    max_class_strength: int
    min_room_capacity: int
    max_room_capacity: int
    valid_shifts: tuple[str, ...]
    valid_academic_levels: tuple[str, ...]


def validate_allocation_rules(rules: AllocationRules) -> None:
    if rules.min_class_strength <= 0:
        raise ValueError("min_class_strength must be > 0")
    if rules.max_class_strength < rules.min_class_strength:
        raise ValueError("max_class_strength must be >= min_class_strength")
    if rules.min_room_capacity <= 0:
        raise ValueError("min_room_capacity must be > 0")
    if rules.max_room_capacity < rules.min_room_capacity:
        raise ValueError("max_room_capacity must be >= min_room_capacity")
    if not rules.valid_shifts:
        raise ValueError("valid_shifts must not be empty")
    if not rules.valid_academic_levels:
        raise ValueError("valid_academic_levels must not be empty")
    unknown = set(rules.valid_academic_levels) - set(KNOWN_ACADEMIC_LEVELS)
    if unknown:
        raise ValueError(f"unknown academic levels: {sorted(unknown)}")


def parse_exam_date(exam_date: Union[str, date]) -> date:
    """Accept a ``date``, a ``datetime`` or an ISO 8601 date or date-time string.

    A time component is dropped; only the calendar day keys a run.
    """
    if isinstance(exam_date, datetime):
        return exam_date.date()
    if isinstance(exam_date, date):
        return exam_date
    raw = str(exam_date).strip()
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError as exc:
        raise AllocationValidationError("exam date must be an ISO 8601 date") from exc


def validate_shift(shift: str, rules: AllocationRules) -> None:
    if shift not in rules.valid_shifts:
        raise AllocationValidationError(
            f"shift must be one of {', '.join(rules.valid_shifts)}"
        )


def validate_run_inputs(
    exam_date: Union[str, date],
    shift: str,
    rules: AllocationRules,
) -> date:
    """Validate the run key and return the parsed date."""
    parsed = parse_exam_date(exam_date)
    validate_shift(shift, rules)
    return parsed


def validate_exam_class(exam_class: ExamClass, rules: AllocationRules) -> None:
    if not exam_class.class_name.strip():
        raise ValueError("class_name must be non-empty")
    if exam_class.department_id <= 0:
        raise ValueError("department_id must be > 0")
    if exam_class.academic_level not in rules.valid_academic_levels:
        raise ValueError(
            f"academic_level must be one of {', '.join(rules.valid_academic_levels)}"
        )
    if not rules.min_class_strength <= exam_class.strength <= rules.max_class_strength:
        raise ValueError(
            "strength must be between "
            f"{rules.min_class_strength} and {rules.max_class_strength}"
        )


def validate_room(room: Room, rules: AllocationRules) -> None:
    if not room.room_code.strip() or not room.room_name.strip():
        raise ValueError("room_code and room_name must be non-empty")
    if not rules.min_room_capacity <= room.capacity <= rules.max_room_capacity:
        raise ValueError(
            "capacity must be between "
            f"{rules.min_room_capacity} and {rules.max_room_capacity}"
        )
    if room.academic_level is not None and room.academic_level not in rules.valid_academic_levels:
        raise ValueError(
            f"room academic_level must be one of {', '.join(rules.valid_academic_levels)}"
        )

"""Greedy class-to-room matching.

Classes are visited largest first and each takes the smallest unused room
that seats it, preferring a room whose capacity equals the class strength.
The pass is single and never revisits a decision, so the outcome is fully
determined by the input order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from seat_allocation.domain.constraints import AllocationRules
from seat_allocation.domain.errors import PlacementError
from seat_allocation.domain.models import ExamClass, Placement, Room
from seat_allocation.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class MatchingResult:
    placements: list[Placement] = field(default_factory=list)
    failures: list[PlacementError] = field(default_factory=list)

    @property
    def rooms_used(self) -> int:
        return len({placement.room.room_id for placement in self.placements})

    @property
    def students_allocated(self) -> int:
        return sum(placement.seats for placement in self.placements)


def order_classes(classes: Iterable[ExamClass]) -> list[ExamClass]:
    """Largest strength first; ties keep catalog order."""
    return sorted(classes, key=lambda item: -item.strength)


def order_rooms(rooms: Iterable[Room]) -> list[Room]:
    """Smallest capacity first; ties keep catalog order."""
    return sorted(rooms, key=lambda item: item.capacity)


def room_accepts_level(room: Room, exam_class: ExamClass, rules: AllocationRules) -> bool:
    if not rules.strict_ug_pg_separation or room.academic_level is None:
        return True
    return room.academic_level == exam_class.academic_level


def candidate_rooms(
    exam_class: ExamClass,
    rooms: Sequence[Room],
    used_room_ids: set[int],
    rules: AllocationRules,
) -> list[Room]:
    """Unused rooms that seat the class, still in ascending capacity order."""
    return [
        room
        for room in rooms
        if room.room_id not in used_room_ids
        and room.capacity >= exam_class.strength
        and room_accepts_level(room, exam_class, rules)
    ]


def select_best_room(
    exam_class: ExamClass,
    candidates: Sequence[Room],
    rules: AllocationRules,
) -> Optional[Room]:
    if not candidates:
        return None
    if rules.prioritize_exact_matches:
        for room in candidates:
            if room.capacity == exam_class.strength:
                return room
    return candidates[0]


def match_classes_to_rooms(
    classes: Iterable[ExamClass],
    rooms: Iterable[Room],
    rules: AllocationRules,
) -> MatchingResult:
    """Place every class it can; the used-room set lives only in this call."""
    ordered_classes = order_classes(classes)
    ordered_rooms = order_rooms(rooms)
    used_room_ids: set[int] = set()
    result = MatchingResult()

    for exam_class in ordered_classes:
        candidates = candidate_rooms(exam_class, ordered_rooms, used_room_ids, rules)
        room = select_best_room(exam_class, candidates, rules)
        if room is None:
            failure = PlacementError(
                class_name=exam_class.class_name,
                reason="No available rooms",
                class_id=exam_class.class_id,
            )
            result.failures.append(failure)
            logger.warning(
                "Class unplaced | class_id=%s | strength=%s | level=%s",
                exam_class.class_id,
                exam_class.strength,
                exam_class.academic_level,
            )
            continue

        used_room_ids.add(room.room_id)
        result.placements.append(
            Placement(
                exam_class=exam_class,
                room=room,
                is_exact_match=room.capacity == exam_class.strength,
            )
        )
        logger.debug(
            "Class placed | class_id=%s | room_id=%s | strength=%s | capacity=%s",
            exam_class.class_id,
            room.room_id,
            exam_class.strength,
            room.capacity,
        )

    return result

"""Structured results returned to callers of the allocation engine."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from seat_allocation.domain.models import AllocationRecord, AllocationStoreStatistics, Placement


class AllocationDetail(BaseModel):
    class_name: str = Field(serialization_alias="class")
    department_id: int
    academic_level: str
    strength: int = Field(gt=0)
    room: str
    room_capacity: int = Field(gt=0)
    students_allocated: int = Field(gt=0)

    @classmethod
    def from_placement(cls, placement: Placement) -> "AllocationDetail":
        return cls(
            class_name=placement.exam_class.class_name,
            department_id=placement.exam_class.department_id,
            academic_level=placement.exam_class.academic_level,
            strength=placement.exam_class.strength,
            room=placement.room.room_name,
            room_capacity=placement.room.capacity,
            students_allocated=placement.seats,
        )


class AllocationStatistics(BaseModel):
    total_classes: int = Field(default=0, ge=0)
    allocated_classes: int = Field(default=0, ge=0)
    unallocated_classes: int = Field(default=0, ge=0)
    total_rooms_used: int = Field(default=0, ge=0)
    total_students_allocated: int = Field(default=0, ge=0)
    allocation_details: list[AllocationDetail] = Field(default_factory=list)


class AllocationRunResult(BaseModel):
    success: bool = False
    partial: bool = False
    message: str = ""
    exam_date: Optional[str] = None
    shift: Optional[str] = None
    statistics: AllocationStatistics = Field(default_factory=AllocationStatistics)
    errors: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class AllocationRecordResponse(BaseModel):
    allocation_id: int
    exam_id: int
    class_id: int
    room_id: int
    allocated_date: str
    shift: str
    total_allocated_seats: int = Field(gt=0)
    is_confirmed: bool
    created_by: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: AllocationRecord) -> "AllocationRecordResponse":
        return cls(
            allocation_id=record.allocation_id or 0,
            exam_id=record.exam_id,
            class_id=record.class_id,
            room_id=record.room_id,
            allocated_date=record.allocated_date,
            shift=record.shift,
            total_allocated_seats=record.total_allocated_seats,
            is_confirmed=record.is_confirmed,
            created_by=record.created_by,
            created_at=record.created_at,
        )


class StoreStatisticsResponse(BaseModel):
    count: int = Field(ge=0)
    total_seats: int = Field(ge=0)
    distinct_rooms: int = Field(ge=0)
    avg_seats_per_room: float = Field(ge=0.0)

    @classmethod
    def from_statistics(cls, stats: AllocationStoreStatistics) -> "StoreStatisticsResponse":
        return cls(
            count=stats.count,
            total_seats=stats.total_seats,
            distinct_rooms=stats.distinct_rooms,
            avg_seats_per_room=stats.avg_seats_per_room,
        )


class AllocationSummary(BaseModel):
    exam_id: int
    shift: str
    statistics: StoreStatisticsResponse
    allocations: list[AllocationRecordResponse]

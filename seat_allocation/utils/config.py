"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from seat_allocation.domain.constraints import AllocationRules


_ENV_PREFIX = "SEAT_ALLOCATION_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{_ENV_PREFIX}{name}", default).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name, "true" if default else "false").lower()
    return raw in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    return int(_env(name, str(default)))


def _env_tuple(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _env(name, ",".join(default))
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    database_timeout_seconds: float
    log_level: str
    log_file: Optional[Path]

    allocation_prioritize_exact_matches: bool
    allocation_allow_partial_allocations: bool
    allocation_allow_department_mixing: bool
    allocation_strict_ug_pg_separation: bool
    allocation_strict_shift_separation: bool

    min_class_strength: int
    max_class_strength: int
    min_room_capacity: int
    max_room_capacity: int
    valid_shifts: tuple[str, ...]
    valid_academic_levels: tuple[str, ...]

    default_exam_id: int
    default_created_by: int

    def allocation_rules(self) -> AllocationRules:
        """Project the rule subset consumed by the allocation engine."""
        return AllocationRules(
            prioritize_exact_matches=self.allocation_prioritize_exact_matches,
            allow_partial_allocations=self.allocation_allow_partial_allocations,
            allow_department_mixing=self.allocation_allow_department_mixing,
            strict_ug_pg_separation=self.allocation_strict_ug_pg_separation,
            strict_shift_separation=self.allocation_strict_shift_separation,
            min_class_strength=self.min_class_strength,
            max_class_strength=self.max_class_strength,
            min_room_capacity=self.min_room_capacity,
            max_room_capacity=self.max_room_capacity,
            valid_shifts=self.valid_shifts,
            valid_academic_levels=self.valid_academic_levels,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests clear the cache to reload."""
    log_file = _env("LOG_FILE", "")
    return Settings(
        app_name=_env("APP_NAME", "Exam Seat Allocation"),
        app_version=_env("APP_VERSION", "1.0.0"),
        database_path=Path(_env("DATABASE_PATH", "data/seat_allocation.db")),
        database_timeout_seconds=float(_env("DATABASE_TIMEOUT_SECONDS", "5.0")),
        log_level=_env("LOG_LEVEL", "INFO"),
        log_file=Path(log_file) if log_file else None,
        allocation_prioritize_exact_matches=_env_bool("PRIORITIZE_EXACT_MATCHES", True),
        allocation_allow_partial_allocations=_env_bool("ALLOW_PARTIAL_ALLOCATIONS", False),
        allocation_allow_department_mixing=_env_bool("ALLOW_DEPARTMENT_MIXING", True),
        allocation_strict_ug_pg_separation=_env_bool("STRICT_UG_PG_SEPARATION", True),
        allocation_strict_shift_separation=_env_bool("STRICT_SHIFT_SEPARATION", True),
        min_class_strength=_env_int("MIN_CLASS_STRENGTH", 1),
        max_class_strength=_env_int("MAX_CLASS_STRENGTH", 500),
        min_room_capacity=_env_int("MIN_ROOM_CAPACITY", 1),
        max_room_capacity=_env_int("MAX_ROOM_CAPACITY", 1000),
        valid_shifts=_env_tuple("VALID_SHIFTS", ("morning", "afternoon")),
        valid_academic_levels=_env_tuple("VALID_ACADEMIC_LEVELS", ("UG", "PG")),
        default_exam_id=_env_int("DEFAULT_EXAM_ID", 1),
        default_created_by=_env_int("DEFAULT_CREATED_BY", 1),
    )

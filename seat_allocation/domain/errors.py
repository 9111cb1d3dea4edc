"""Error taxonomy shared by the repository and service layers."""

from __future__ import annotations

from typing import Optional


class AllocationError(Exception):
    """Base class for allocation failures."""


class AllocationValidationError(AllocationError, ValueError):
    """Raised when the run date or shift is rejected before any storage work."""


class TransactionError(AllocationError):
    """Raised when a storage transaction cannot be opened, committed or rolled back."""


class StorageError(AllocationError):
    """Raised when a catalog or the record store cannot read or write."""


class PlacementError(AllocationError):
    """A class that could not be placed in any room.

    Instances are collected into the run result rather than raised.
    """

    def __init__(
        self,
        class_name: str,
        reason: str,
        class_id: Optional[int] = None,
    ) -> None:
        self.class_id = class_id
        self.class_name = class_name
        self.reason = reason
        super().__init__(f"{reason} for class: {class_name}")

"""Exception hierarchy for the fleet energy / alert core."""

from __future__ import annotations


class FleetError(Exception):
    """Base exception for the fleet core."""


class UnitNotFoundError(FleetError):
    """No unit with the requested id."""

    def __init__(self, unit_id: str) -> None:
        super().__init__(f"Unit {unit_id!r} not found")
        self.unit_id = unit_id


class GroupNotFoundError(FleetError):
    """No parent group with the requested id."""

    def __init__(self, group_id: str) -> None:
        super().__init__(f"Group {group_id!r} not found")
        self.group_id = group_id


class InvalidControlError(FleetError):
    """A control action carried an out-of-range value."""


class TransientComputeError(FleetError):
    """A single unit's calculation failed during a sweep."""

    def __init__(self, unit_id: str, cause: BaseException) -> None:
        super().__init__(f"Calculation failed for unit {unit_id!r}: {cause}")
        self.unit_id = unit_id
        self.cause = cause


class CommitFailure(FleetError):
    """The write phase of a sweep failed; nothing from the pass was persisted."""

"""Fleet contracts: data structures shared by the energy and alert modules."""

from src.contracts.alert import AlertEvent
from src.contracts.enums import AlertOutcome, EnergyBranch, Mode, Severity
from src.contracts.unit import ParentGroup, Reading, Unit

__all__ = [
    "AlertEvent",
    "AlertOutcome",
    "EnergyBranch",
    "Mode",
    "ParentGroup",
    "Reading",
    "Severity",
    "Unit",
]

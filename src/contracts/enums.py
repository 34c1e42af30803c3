"""Canonical enumerations shared by the energy and alert modules."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Alert severity carried to the notifier; cooling anomalies are always high."""

    HIGH = "high"


class Mode(str, Enum):
    ECO = "eco"
    NORMAL = "normal"
    HIGH = "high"


class EnergyBranch(str, Enum):
    """Which accumulation branch produced an energy delta."""

    IDLE = "idle"                  # powered off or zero elapsed time
    STARTUP = "startup"            # still inside the startup window
    STARTUP_SPLIT = "startup_split"  # window boundary crossed since last pass
    NORMAL = "normal"


class AlertOutcome(str, Enum):
    SKIPPED = "skipped"            # off or no telemetry yet
    INSUFFICIENT = "insufficient"  # fewer than two readings
    RAISED = "raised"
    SUPPRESSED = "suppressed"      # anomalous, alert raised recently
    CLEARED = "cleared"
    OK = "ok"

"""Cooling-anomaly alert event emitted to the notification collaborator."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.contracts.enums import Severity
from src.shared.clock import format_ts


@dataclass(frozen=True, slots=True)
class AlertEvent:
    """Raised when a powered-on unit's room temperature fails to drop.

    The core does not own alerts after emitting them; persistence and
    delivery belong to the notifier.
    """

    unit_id: str
    group_id: str | None
    previous_reading: float
    current_reading: float
    minutes_between: float
    raised_at: datetime
    severity: str = Severity.HIGH.value

    @property
    def issue(self) -> str:
        return (
            f"Room temperature not decreasing ({self.previous_reading}°C → "
            f"{self.current_reading}°C in {self.minutes_between:.1f} min)"
        )

    # ── serialisation ─────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "group_id": self.group_id,
            "previous_reading": self.previous_reading,
            "current_reading": self.current_reading,
            "change": round(self.current_reading - self.previous_reading, 2),
            "minutes_between": round(self.minutes_between, 1),
            "severity": self.severity,
            "raised_at": format_ts(self.raised_at),
            "issue": self.issue,
        }

    def to_json(self) -> str:
        """Return compact JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

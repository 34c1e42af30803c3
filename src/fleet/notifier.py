"""Notification collaborator — alert events and realtime energy/telemetry deltas.

Delivery is best-effort: every call from the core goes through
:func:`notify_safely`, so a failing notifier is logged and never affects
state that has already been committed.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from src.contracts.alert import AlertEvent
from src.shared.clock import format_ts

log = logging.getLogger(__name__)


class Notifier(Protocol):
    def alert_raised(self, event: AlertEvent) -> None: ...

    def energy_updated(
        self, unit_id: str, energy_delta: float, total_energy_kwh: float, at: datetime
    ) -> None: ...

    def telemetry_updated(self, unit_id: str, room_temperature: float, at: datetime) -> None: ...


def notify_safely(fn: Callable[..., Any], *args: Any) -> bool:
    """Call a notifier method, logging instead of raising on failure."""
    try:
        fn(*args)
    except Exception as exc:
        log.warning("Notification %s failed: %s", getattr(fn, "__name__", fn), exc)
        return False
    return True


class LoggingNotifier:
    """Writes every notification to the log."""

    def alert_raised(self, event: AlertEvent) -> None:
        log.warning("ALERT unit=%s group=%s: %s", event.unit_id, event.group_id, event.issue)

    def energy_updated(
        self, unit_id: str, energy_delta: float, total_energy_kwh: float, at: datetime
    ) -> None:
        log.debug(
            "Energy unit=%s +%.4f kWh (total %.4f kWh) at %s",
            unit_id, energy_delta, total_energy_kwh, format_ts(at),
        )

    def telemetry_updated(self, unit_id: str, room_temperature: float, at: datetime) -> None:
        log.debug("Telemetry unit=%s room=%.1f°C at %s", unit_id, room_temperature, format_ts(at))


class JsonlNotifier:
    """Appends one JSON object per notification to a JSONL file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _write(self, record: dict[str, Any]) -> None:
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"))
        with self._lock, self.path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
            fh.flush()

    def alert_raised(self, event: AlertEvent) -> None:
        self._write({"type": "alert", **event.to_dict()})

    def energy_updated(
        self, unit_id: str, energy_delta: float, total_energy_kwh: float, at: datetime
    ) -> None:
        self._write(
            {
                "type": "energy",
                "unit_id": unit_id,
                "energy_delta": round(energy_delta, 6),
                "total_energy_kwh": round(total_energy_kwh, 6),
                "at": format_ts(at),
            }
        )

    def telemetry_updated(self, unit_id: str, room_temperature: float, at: datetime) -> None:
        self._write(
            {
                "type": "telemetry",
                "unit_id": unit_id,
                "room_temperature": room_temperature,
                "at": format_ts(at),
            }
        )

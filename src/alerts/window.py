"""Telemetry Window — last few room-temperature readings per unit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from src.contracts.unit import Reading, Unit
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WindowUpdate:
    history: list[Reading]
    appended: bool
    invalidated: bool

    @property
    def changed(self) -> bool:
        return self.appended or self.invalidated


def is_stale(history: list[Reading], unit: Unit) -> bool:
    """True when the window predates the unit's current power-on."""
    powered_on_at = unit.powered_on_at
    if not history or powered_on_at is None:
        return False
    return history[0].timestamp < powered_on_at


def append_reading(
    unit: Unit,
    reading: Reading,
    now: datetime,
    settings: FleetSettings = DEFAULT_SETTINGS,
) -> WindowUpdate:
    """Return the unit's history with *reading* appended when it is new.

    A reading is kept when nothing was stored in the last
    ``history_fresh_min`` minutes, or when it differs from the latest
    stored reading by more than ``history_epsilon``. Only the newest
    ``history_max_len`` entries survive. The unit itself is not modified.
    """
    history = sorted(unit.room_temperature_history, key=lambda r: r.timestamp)
    if not unit.power_state:
        return WindowUpdate(history, appended=False, invalidated=False)

    invalidated = False
    if is_stale(history, unit):
        log.info("Unit %s restarted — clearing %d stale readings", unit.unit_id, len(history))
        history = []
        invalidated = True

    fresh_since = now - settings.history_fresh
    has_recent = any(r.timestamp > fresh_since for r in history)
    differs = bool(history) and abs(history[-1].temp - reading.temp) > settings.history_epsilon

    if has_recent and not differs:
        return WindowUpdate(history, appended=False, invalidated=invalidated)

    history.append(reading)
    history = history[-settings.history_max_len:]
    log.debug("Unit %s: kept reading %.1f°C (%d in window)", unit.unit_id, reading.temp, len(history))
    return WindowUpdate(history, appended=True, invalidated=invalidated)

"""Energy Accumulator — per-unit time integration, startup-aware.

Three pieces, each usable on its own:

  resolve_window_start  — pure: which instant the current pass integrates from
  repair_tracking       — lazy initialisation of missing tracking fields
  calculate             — energy drawn between the window start and *now*

The caller owns persistence: it applies ``accumulation_fields`` to the
unit's record in the same atomic write that read the unit.

Window-start priority
─────────────────────
  (a) inside the startup window     → startup_started_at
  (b) last_energy_calculated_at set, ≥ min_recalc_gap old → it
  (c) last_energy_calculated_at set, younger than the gap  → last_power_changed_at,
      else created_at
  (d) last_power_changed_at
  (e) created_at, else now

No branch ever reaches back before the last committed calculation: (a)
and (c) are clamped to ``last_energy_calculated_at`` so that repeated
passes (sweeps, control actions) never count the same interval twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from src.contracts.enums import EnergyBranch
from src.contracts.unit import Unit
from src.energy.rates import adjusted_rate, startup_rate
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)

_HOUR = timedelta(hours=1)


@dataclass(frozen=True, slots=True)
class EnergyCalculation:
    """Outcome of one accumulation pass over one unit."""

    energy_delta: float
    startup_active_after: bool
    window_start: datetime | None
    branch: EnergyBranch


def in_startup_window(unit: Unit, now: datetime, settings: FleetSettings = DEFAULT_SETTINGS) -> bool:
    if not unit.startup_active or unit.startup_started_at is None:
        return False
    return now < unit.startup_started_at + settings.startup_duration


def _later(a: datetime, b: datetime | None) -> datetime:
    return a if b is None or a >= b else b


def resolve_window_start(
    unit: Unit,
    now: datetime,
    settings: FleetSettings = DEFAULT_SETTINGS,
) -> datetime:
    """Return the instant this pass integrates from (see module docstring)."""
    last_calc = unit.last_energy_calculated_at

    if in_startup_window(unit, now, settings):
        return _later(unit.startup_started_at, last_calc)

    if last_calc is not None:
        if now - last_calc >= settings.min_recalc_gap:
            return last_calc
        fallback = unit.last_power_changed_at or unit.created_at
        return _later(last_calc, fallback)

    if unit.last_power_changed_at is not None:
        return unit.last_power_changed_at

    return unit.created_at or now


# ═══════════════════════════════════════════════════════════════════════════
#  Lazy repair
# ═══════════════════════════════════════════════════════════════════════════


def needs_repair(unit: Unit) -> bool:
    """True for a powered-on unit that has never been given startup tracking."""
    return (
        unit.power_state
        and unit.last_energy_calculated_at is None
        and unit.startup_started_at is None
    )


def repair_tracking(unit: Unit, now: datetime) -> dict[str, Any]:
    """Initialise missing tracking fields on *unit* in place.

    Returns the fields that were set (empty when nothing needed repair),
    so the caller can persist them with the accumulation write.
    """
    if not needs_repair(unit):
        return {}
    started = unit.last_power_changed_at or unit.created_at or now
    log.warning(
        "Unit %s is ON without energy tracking — initialising startup from %s",
        unit.unit_id,
        started.isoformat(),
    )
    unit.startup_active = True
    unit.startup_started_at = started
    return {"startup_active": True, "startup_started_at": started}


# ═══════════════════════════════════════════════════════════════════════════
#  Calculation
# ═══════════════════════════════════════════════════════════════════════════


def calculate(
    unit: Unit,
    now: datetime,
    settings: FleetSettings = DEFAULT_SETTINGS,
) -> EnergyCalculation:
    """Energy drawn by *unit* since its window start, in kWh."""
    if not unit.power_state:
        return EnergyCalculation(0.0, unit.startup_active, None, EnergyBranch.IDLE)

    start = resolve_window_start(unit, now, settings)
    elapsed_h = (now - start) / _HOUR
    if elapsed_h <= 0:
        return EnergyCalculation(0.0, unit.startup_active, start, EnergyBranch.IDLE)

    if in_startup_window(unit, now, settings):
        delta = startup_rate(unit.capacity_class, settings) * elapsed_h
        return EnergyCalculation(delta, True, start, EnergyBranch.STARTUP)

    rate = adjusted_rate(unit.capacity_class, unit.mode, unit.set_temperature, settings)

    if unit.startup_active and unit.startup_started_at is not None:
        boundary = unit.startup_started_at + settings.startup_duration
        if start < boundary <= now:
            startup_h = (boundary - start) / _HOUR
            normal_h = (now - boundary) / _HOUR
            delta = startup_rate(unit.capacity_class, settings) * startup_h + rate * normal_h
            log.debug(
                "Unit %s left startup at %s (%.4f h startup, %.4f h normal)",
                unit.unit_id, boundary.isoformat(), startup_h, normal_h,
            )
            return EnergyCalculation(delta, False, start, EnergyBranch.STARTUP_SPLIT)
        # stale flag: the window ended before this pass began
        return EnergyCalculation(rate * elapsed_h, False, start, EnergyBranch.NORMAL)

    return EnergyCalculation(rate * elapsed_h, unit.startup_active, start, EnergyBranch.NORMAL)


def accumulation_fields(unit: Unit, calc: EnergyCalculation, now: datetime) -> dict[str, Any]:
    """Fields the caller writes atomically after :func:`calculate`."""
    return {
        "total_energy_kwh": unit.total_energy_kwh + max(0.0, calc.energy_delta),
        "last_energy_calculated_at": now,
        "startup_active": calc.startup_active_after,
    }

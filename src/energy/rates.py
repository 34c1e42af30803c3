"""Rate Model — fixed lookup tables plus the set-temperature multiplier."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.contracts.unit import Unit
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings, capacity_key

log = logging.getLogger(__name__)


def _rate_row(capacity: float | str, settings: FleetSettings) -> dict[str, float]:
    key = capacity_key(capacity)
    row = settings.base_rates.get(key)
    if row is None:
        log.warning(
            "No energy rates for capacity %s — using %s-ton rates",
            key,
            settings.fallback_capacity,
        )
        row = settings.base_rates[settings.fallback_capacity]
    return row


def base_rate(
    capacity: float | str,
    mode: str,
    settings: FleetSettings = DEFAULT_SETTINGS,
) -> float:
    """kWh/h for *capacity* in *mode*, before temperature adjustment."""
    row = _rate_row(capacity, settings)
    rate = row.get(mode)
    if rate is None:
        log.warning("Unknown mode %r — using %s rate", mode, settings.fallback_mode)
        rate = row[settings.fallback_mode]
    return rate


def startup_rate(capacity: float | str, settings: FleetSettings = DEFAULT_SETTINGS) -> float:
    key = capacity_key(capacity)
    rate = settings.startup_rates.get(key)
    if rate is None:
        log.warning(
            "No startup rate for capacity %s — using %s-ton rate",
            key,
            settings.fallback_capacity,
        )
        rate = settings.startup_rates[settings.fallback_capacity]
    return rate


def temperature_multiplier(temperature: float, settings: FleetSettings = DEFAULT_SETTINGS) -> float:
    """Scale factor relative to the 24° baseline.

    Below baseline each degree adds ``cooler_step`` (never below 1.0);
    above baseline each degree removes ``warmer_step``, floored at
    ``min_multiplier``.
    """
    diff = settings.baseline_temperature - temperature
    if diff > 0:
        return max(1.0, 1 + diff * settings.cooler_step)
    if diff < 0:
        return max(settings.min_multiplier, 1 + diff * settings.warmer_step)
    return 1.0


def adjusted_rate(
    capacity: float | str,
    mode: str,
    temperature: float,
    settings: FleetSettings = DEFAULT_SETTINGS,
) -> float:
    return base_rate(capacity, mode, settings) * temperature_multiplier(temperature, settings)


@dataclass(frozen=True, slots=True)
class RateBreakdown:
    """Rate currently applied to a unit, for display next to its total."""

    current_rate: float
    base_rate: float
    temperature_multiplier: float
    in_startup: bool


def rate_breakdown(unit: Unit, settings: FleetSettings = DEFAULT_SETTINGS) -> RateBreakdown:
    """Current kWh/h for *unit*; startup draw is not temperature-adjusted."""
    if not unit.power_state:
        return RateBreakdown(0.0, 0.0, 1.0, False)
    if unit.startup_active:
        rate = startup_rate(unit.capacity_class, settings)
        return RateBreakdown(rate, rate, 1.0, True)
    base = base_rate(unit.capacity_class, unit.mode, settings)
    mult = temperature_multiplier(unit.set_temperature, settings)
    return RateBreakdown(base * mult, base, mult, False)

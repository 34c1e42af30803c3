"""Configuration surface for the energy and alert core.

Defaults mirror ``config/fleet.yaml``; a YAML file only needs the keys it
overrides.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

# kWh per hour, keyed by capacity class (tons) then mode
DEFAULT_BASE_RATES: dict[str, dict[str, float]] = {
    "0.5": {"eco": 0.4, "normal": 0.5, "high": 0.7},
    "1": {"eco": 0.8, "normal": 1.0, "high": 1.4},
    "1.5": {"eco": 1.2, "normal": 1.5, "high": 1.8},
    "2": {"eco": 1.6, "normal": 2.0, "high": 2.4},
}

# kWh per hour while inside the startup window
DEFAULT_STARTUP_RATES: dict[str, float] = {
    "0.5": 0.9,
    "1": 1.6,
    "1.5": 2.1,
    "2": 2.8,
}


def capacity_key(capacity: float | int | str) -> str:
    """Normalise a capacity class to its rate-table key (``1.0`` → ``"1"``)."""
    try:
        value = float(capacity)
    except (TypeError, ValueError):
        return str(capacity)
    return f"{value:g}"


@dataclass(frozen=True)
class FleetSettings:
    """Static constants for rate tables, sweeps and alert suppression."""

    base_rates: dict[str, dict[str, float]] = field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_BASE_RATES.items()}
    )
    startup_rates: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_STARTUP_RATES))
    fallback_capacity: str = "1"
    fallback_mode: str = "normal"
    baseline_temperature: float = 24.0
    cooler_step: float = 0.075       # +7.5 % per degree below baseline
    warmer_step: float = 0.05        # -5 % per degree above baseline
    min_multiplier: float = 0.7

    startup_duration_min: float = 15.0
    min_recalc_gap_sec: float = 5.0
    energy_sweep_interval_min: float = 10.0
    alert_sweep_interval_min: float = 5.0

    alert_raise_suppression_min: float = 5.0
    alert_clear_window_min: float = 10.0
    history_max_len: int = 3
    history_fresh_min: float = 5.0
    history_epsilon: float = 0.1

    sweep_workers: int = 8

    @property
    def startup_duration(self) -> timedelta:
        return timedelta(minutes=self.startup_duration_min)

    @property
    def min_recalc_gap(self) -> timedelta:
        return timedelta(seconds=self.min_recalc_gap_sec)

    @property
    def alert_raise_suppression(self) -> timedelta:
        return timedelta(minutes=self.alert_raise_suppression_min)

    @property
    def alert_clear_window(self) -> timedelta:
        return timedelta(minutes=self.alert_clear_window_min)

    @property
    def history_fresh(self) -> timedelta:
        return timedelta(minutes=self.history_fresh_min)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FleetSettings:
        """Create from the parsed ``fleet.yaml`` layout.

        Expected sections: ``rates`` (``base``, ``startup``), ``energy``,
        ``alerts``, ``telemetry``, ``scheduler``.
        """
        rates = data.get("rates", {})
        energy = data.get("energy", {})
        alerts = data.get("alerts", {})
        telemetry = data.get("telemetry", {})
        scheduler = data.get("scheduler", {})
        defaults = cls()

        base = {
            capacity_key(cap): {str(m): float(r) for m, r in modes.items()}
            for cap, modes in rates.get("base", {}).items()
        } or defaults.base_rates
        startup = {
            capacity_key(cap): float(r) for cap, r in rates.get("startup", {}).items()
        } or defaults.startup_rates

        return cls(
            base_rates=base,
            startup_rates=startup,
            fallback_capacity=capacity_key(rates.get("fallback_capacity", defaults.fallback_capacity)),
            fallback_mode=rates.get("fallback_mode", defaults.fallback_mode),
            baseline_temperature=float(energy.get("baseline_temperature", defaults.baseline_temperature)),
            cooler_step=float(energy.get("cooler_step", defaults.cooler_step)),
            warmer_step=float(energy.get("warmer_step", defaults.warmer_step)),
            min_multiplier=float(energy.get("min_multiplier", defaults.min_multiplier)),
            startup_duration_min=float(energy.get("startup_duration_min", defaults.startup_duration_min)),
            min_recalc_gap_sec=float(energy.get("min_recalc_gap_sec", defaults.min_recalc_gap_sec)),
            energy_sweep_interval_min=float(
                scheduler.get("energy_sweep_interval_min", defaults.energy_sweep_interval_min)
            ),
            alert_sweep_interval_min=float(
                scheduler.get("alert_sweep_interval_min", defaults.alert_sweep_interval_min)
            ),
            alert_raise_suppression_min=float(
                alerts.get("raise_suppression_min", defaults.alert_raise_suppression_min)
            ),
            alert_clear_window_min=float(alerts.get("clear_window_min", defaults.alert_clear_window_min)),
            history_max_len=int(telemetry.get("history_max_len", defaults.history_max_len)),
            history_fresh_min=float(telemetry.get("fresh_min", defaults.history_fresh_min)),
            history_epsilon=float(telemetry.get("epsilon", defaults.history_epsilon)),
            sweep_workers=int(scheduler.get("sweep_workers", defaults.sweep_workers)),
        )


DEFAULT_SETTINGS = FleetSettings()

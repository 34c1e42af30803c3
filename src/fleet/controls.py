"""Control-action hooks: what the core does when an operator changes a unit.

  power_on            — start startup tracking, clear prior alert state
  power_off           — final accumulation, then clear startup tracking
  change_mode         — accumulate at the old rate, then switch mode
  change_temperature  — accumulate at the old rate, then switch set-point
  record_room_temperature — telemetry ingest from the device link

Energy-affecting changes go through ``EnergySweep.run_unit(then_apply=…)``
so the accumulation and the field change land in one commit.
"""

from __future__ import annotations

import logging
from datetime import datetime

from src.contracts.enums import Mode
from src.contracts.errors import InvalidControlError
from src.energy.sweep import EnergySweep, UnitEnergyResult
from src.fleet.notifier import LoggingNotifier, Notifier, notify_safely
from src.fleet.store import FleetStore
from src.shared.clock import utcnow
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)

MIN_SET_TEMPERATURE = 16.0
MAX_SET_TEMPERATURE = 30.0
_MODES = {m.value for m in Mode}


class FleetControls:
    def __init__(
        self,
        store: FleetStore,
        energy: EnergySweep | None = None,
        notifier: Notifier | None = None,
        settings: FleetSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.energy = energy or EnergySweep(store, self.notifier, settings)

    def power_on(self, unit_id: str, now: datetime | None = None) -> None:
        now = now or utcnow()
        with self.store.row_lock(unit_id):
            unit = self.store.get_unit(unit_id)
            if unit.power_state:
                log.info("Unit %s already ON — power-on ignored", unit_id)
                return
            self.store.update_unit(
                unit_id,
                {
                    "power_state": True,
                    "last_power_changed_at": now,
                    "startup_active": True,
                    "startup_started_at": now,
                    "last_energy_calculated_at": now,
                    "mode": unit.mode or Mode.HIGH.value,
                    "working_flag": None,
                    "alert_raised_at": None,
                },
            )
        log.info("Unit %s power on — startup period started", unit_id)

    def power_off(self, unit_id: str, now: datetime | None = None) -> UnitEnergyResult:
        now = now or utcnow()
        result = self.energy.run_unit(
            unit_id,
            now,
            then_apply={
                "power_state": False,
                "last_power_changed_at": now,
                "startup_active": False,
                "startup_started_at": None,
            },
            apply_when_off=False,
        )
        if result.skipped:
            log.info("Unit %s already OFF — power-off ignored", unit_id)
            return result
        log.info(
            "Unit %s power off — final +%.4f kWh, total %.4f kWh",
            unit_id, result.energy_delta, result.total_energy_kwh,
        )
        return result

    def change_mode(self, unit_id: str, mode: str, now: datetime | None = None) -> UnitEnergyResult:
        if mode not in _MODES:
            raise InvalidControlError(
                f"Invalid mode: {mode!r}. Must be one of {', '.join(sorted(_MODES))}"
            )
        result = self.energy.run_unit(unit_id, now, then_apply={"mode": mode})
        log.info("Unit %s mode changed to %s", unit_id, mode)
        return result

    def change_temperature(
        self, unit_id: str, temperature: float, now: datetime | None = None
    ) -> UnitEnergyResult:
        if not MIN_SET_TEMPERATURE <= temperature <= MAX_SET_TEMPERATURE:
            raise InvalidControlError(
                f"Invalid temperature: {temperature}. "
                f"Must be between {MIN_SET_TEMPERATURE:g} and {MAX_SET_TEMPERATURE:g}"
            )
        result = self.energy.run_unit(unit_id, now, then_apply={"set_temperature": float(temperature)})
        log.info("Unit %s set temperature changed to %.1f°C", unit_id, temperature)
        return result

    def record_room_temperature(
        self, unit_id: str, room_temperature: float, now: datetime | None = None
    ) -> None:
        """Store the latest room temperature reported by the device."""
        now = now or utcnow()
        self.store.update_unit(unit_id, {"room_temperature": float(room_temperature)})
        notify_safely(self.notifier.telemetry_updated, unit_id, float(room_temperature), now)

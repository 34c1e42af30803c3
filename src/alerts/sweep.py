"""Fleet Alert Sweep — append + evaluate for every powered-on unit with telemetry."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from src.alerts.detector import Evaluation, evaluate
from src.alerts.window import append_reading
from src.contracts.alert import AlertEvent
from src.contracts.enums import AlertOutcome
from src.contracts.errors import TransientComputeError
from src.contracts.unit import Reading
from src.fleet.notifier import LoggingNotifier, Notifier, notify_safely
from src.fleet.store import FleetStore
from src.shared.clock import utcnow
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)


@dataclass
class AlertSweepReport:
    started_at: datetime
    raised: list[AlertEvent] = field(default_factory=list)
    outcomes: Counter[str] = field(default_factory=Counter)
    errors: list[TransientComputeError] = field(default_factory=list)


class AlertSweep:
    def __init__(
        self,
        store: FleetStore,
        notifier: Notifier | None = None,
        settings: FleetSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings

    def check_unit(self, unit_id: str, now: datetime | None = None) -> Evaluation:
        """Append the unit's current room temperature and evaluate it.

        History and alert fields are written in one update under the
        unit's row lock.
        """
        now = now or utcnow()
        with self.store.row_lock(unit_id):
            unit = self.store.get_unit(unit_id)
            if not unit.power_state or unit.room_temperature is None:
                return Evaluation(AlertOutcome.SKIPPED)

            update = append_reading(unit, Reading(unit.room_temperature, now), now, self.settings)
            result = evaluate(unit, update.history, now, self.settings)

            fields = dict(result.fields)
            if update.changed:
                fields["room_temperature_history"] = update.history
            if fields:
                self.store.update_unit(unit_id, fields)
        return result

    def run(self, now: datetime | None = None) -> AlertSweepReport:
        """One pass over the fleet; returns the alerts raised in it."""
        now = now or utcnow()
        report = AlertSweepReport(started_at=now)
        units = [u for u in self.store.find_powered_on_units() if u.room_temperature is not None]
        log.info("Alert sweep: %d powered-on units with telemetry", len(units))

        for u in units:
            try:
                result = self.check_unit(u.unit_id, now)
            except Exception as exc:
                report.errors.append(TransientComputeError(u.unit_id, exc))
                log.error("Alert check failed for unit %s: %s", u.unit_id, exc)
                continue
            report.outcomes[result.outcome.value] += 1
            if result.event is not None:
                report.raised.append(result.event)

        for event in report.raised:
            notify_safely(self.notifier.alert_raised, event)

        log.info(
            "Alert sweep completed: %d raised, outcomes=%s, %d errors",
            len(report.raised), dict(report.outcomes), len(report.errors),
        )
        return report

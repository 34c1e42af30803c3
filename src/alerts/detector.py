"""Anomaly Detector — flags powered-on units whose room is not cooling.

Rule
────
  Compare the two most recent readings in the unit's window.  The tick is
  anomalous when the unit is ON and ``current >= previous``.

  anomalous     → raise (working_flag=False, alert_raised_at=now) unless an
                  alert was raised within ``alert_raise_suppression_min``
  not anomalous → if working_flag is False and the alert is younger than
                  ``alert_clear_window_min``, clear it; older alerts are left
                  for an operator
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from src.contracts.alert import AlertEvent
from src.contracts.enums import AlertOutcome, Severity
from src.contracts.unit import Reading, Unit
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Evaluation:
    outcome: AlertOutcome
    fields: dict[str, Any] = field(default_factory=dict)
    event: AlertEvent | None = None
    previous: Reading | None = None
    current: Reading | None = None


def is_anomalous(unit: Unit, previous: Reading, current: Reading) -> bool:
    return unit.power_state and current.temp >= previous.temp


def _within(ts: datetime | None, now: datetime, window: timedelta) -> bool:
    return ts is not None and ts > now - window


def evaluate(
    unit: Unit,
    history: list[Reading],
    now: datetime,
    settings: FleetSettings = DEFAULT_SETTINGS,
) -> Evaluation:
    """Decide whether *unit* raises, keeps, or clears its cooling alert.

    *history* is the unit's window after the current reading was appended.
    ``Evaluation.fields`` holds the alert fields to persist (empty when
    nothing changes).
    """
    if not unit.power_state or (unit.room_temperature is None and not history):
        return Evaluation(AlertOutcome.SKIPPED)
    if len(history) < 2:
        log.debug("Unit %s has %d reading(s), need 2", unit.unit_id, len(history))
        return Evaluation(AlertOutcome.INSUFFICIENT)

    previous, current = sorted(history, key=lambda r: r.timestamp)[-2:]

    if is_anomalous(unit, previous, current):
        if _within(unit.alert_raised_at, now, settings.alert_raise_suppression):
            log.debug("Unit %s: alert already raised at %s", unit.unit_id, unit.alert_raised_at)
            return Evaluation(AlertOutcome.SUPPRESSED, previous=previous, current=current)

        minutes = (current.timestamp - previous.timestamp).total_seconds() / 60
        event = AlertEvent(
            unit_id=unit.unit_id,
            group_id=unit.group_id,
            previous_reading=previous.temp,
            current_reading=current.temp,
            minutes_between=minutes,
            raised_at=now,
            severity=Severity.HIGH.value,
        )
        log.warning("Unit %s: %s", unit.unit_id, event.issue)
        return Evaluation(
            AlertOutcome.RAISED,
            fields={"working_flag": False, "alert_raised_at": now},
            event=event,
            previous=previous,
            current=current,
        )

    if unit.working_flag is False and _within(unit.alert_raised_at, now, settings.alert_clear_window):
        log.info(
            "Unit %s cooling again (%.1f°C → %.1f°C) — alert cleared",
            unit.unit_id, previous.temp, current.temp,
        )
        return Evaluation(
            AlertOutcome.CLEARED,
            fields={"working_flag": True, "alert_raised_at": None},
            previous=previous,
            current=current,
        )

    return Evaluation(AlertOutcome.OK, previous=previous, current=current)


def active_alerts(units: list[Unit]) -> list[Unit]:
    """Powered-on units currently flagged as not working.

    ``working_flag is None`` means "never evaluated" and is not an alert.
    """
    return [
        u for u in units
        if u.power_state and (u.working_flag is False or u.alert_raised_at is not None)
    ]

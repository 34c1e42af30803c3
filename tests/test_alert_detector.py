"""Tests for src.alerts.detector — raise / suppress / clear decisions."""

from __future__ import annotations

import logging

import pytest

from src.alerts.detector import active_alerts, evaluate, is_anomalous
from src.contracts.enums import AlertOutcome
from tests.conftest import at, make_running_unit, make_unit, reading

NOW = at(30)


def _history(prev: float, curr: float) -> list:
    return [reading(prev, 25), reading(curr, 30)]


# ═══════════════════════════════════════════════════════════════════════════
#  Preconditions
# ═══════════════════════════════════════════════════════════════════════════


class TestPreconditions:
    def test_powered_off_skipped(self):
        unit = make_unit(room_temperature=26.0)
        assert evaluate(unit, _history(25, 26), NOW).outcome == AlertOutcome.SKIPPED

    def test_no_telemetry_skipped(self):
        unit = make_running_unit()
        assert evaluate(unit, [], NOW).outcome == AlertOutcome.SKIPPED

    def test_single_reading_insufficient(self):
        unit = make_running_unit(room_temperature=26.0)
        result = evaluate(unit, [reading(26.0, 30)], NOW)
        assert result.outcome == AlertOutcome.INSUFFICIENT
        assert result.fields == {}


class TestIsAnomalous:
    @pytest.mark.parametrize(
        "prev, curr, expected",
        [(25.0, 25.5, True), (25.0, 25.0, True), (25.0, 24.9, False)],
    )
    def test_rule(self, prev, curr, expected):
        unit = make_running_unit()
        assert is_anomalous(unit, reading(prev, 25), reading(curr, 30)) is expected

    def test_off_unit_never_anomalous(self):
        assert not is_anomalous(make_unit(), reading(25.0, 25), reading(26.0, 30))


# ═══════════════════════════════════════════════════════════════════════════
#  Raise / suppress
# ═══════════════════════════════════════════════════════════════════════════


class TestRaise:
    def test_rising_temperature_raises(self, caplog):
        unit = make_running_unit(unit_id="ac-7", group_id="grp-2", room_temperature=25.5)
        with caplog.at_level(logging.WARNING):
            result = evaluate(unit, _history(25.0, 25.5), NOW)

        assert result.outcome == AlertOutcome.RAISED
        assert result.fields == {"working_flag": False, "alert_raised_at": NOW}
        event = result.event
        assert event.unit_id == "ac-7"
        assert event.group_id == "grp-2"
        assert event.previous_reading == 25.0
        assert event.current_reading == 25.5
        assert event.minutes_between == pytest.approx(5.0)
        assert event.raised_at == NOW
        assert event.severity == "high"
        assert "not decreasing" in caplog.text

    def test_flat_temperature_raises(self):
        unit = make_running_unit(room_temperature=25.0)
        assert evaluate(unit, _history(25.0, 25.0), NOW).outcome == AlertOutcome.RAISED

    def test_uses_two_newest_readings(self):
        unit = make_running_unit(room_temperature=24.0)
        history = [reading(24.0, 30), reading(26.0, 20), reading(25.0, 25)]
        result = evaluate(unit, history, NOW)
        assert result.outcome == AlertOutcome.OK
        assert (result.previous.temp, result.current.temp) == (25.0, 24.0)

    def test_recent_alert_suppresses(self):
        unit = make_running_unit(room_temperature=25.5, working_flag=False, alert_raised_at=at(27))
        result = evaluate(unit, _history(25.0, 25.5), NOW)
        assert result.outcome == AlertOutcome.SUPPRESSED
        assert result.event is None
        assert result.fields == {}

    def test_older_alert_raises_again(self):
        unit = make_running_unit(room_temperature=25.5, working_flag=False, alert_raised_at=at(24))
        result = evaluate(unit, _history(25.0, 25.5), NOW)
        assert result.outcome == AlertOutcome.RAISED
        assert result.fields["alert_raised_at"] == NOW

    def test_alert_exactly_at_suppression_edge_raises(self):
        unit = make_running_unit(room_temperature=25.5, alert_raised_at=at(25))
        assert evaluate(unit, _history(25.0, 25.5), NOW).outcome == AlertOutcome.RAISED


# ═══════════════════════════════════════════════════════════════════════════
#  Clear
# ═══════════════════════════════════════════════════════════════════════════


class TestClear:
    def test_cooling_clears_recent_alert(self):
        unit = make_running_unit(room_temperature=24.0, working_flag=False, alert_raised_at=at(22))
        result = evaluate(unit, _history(25.0, 24.0), NOW)
        assert result.outcome == AlertOutcome.CLEARED
        assert result.fields == {"working_flag": True, "alert_raised_at": None}

    def test_old_alert_left_for_operator(self):
        unit = make_running_unit(room_temperature=24.0, working_flag=False, alert_raised_at=at(18))
        result = evaluate(unit, _history(25.0, 24.0), NOW)
        assert result.outcome == AlertOutcome.OK
        assert result.fields == {}

    def test_healthy_unit_ok(self):
        unit = make_running_unit(room_temperature=24.0, working_flag=True)
        result = evaluate(unit, _history(25.0, 24.0), NOW)
        assert result.outcome == AlertOutcome.OK
        assert result.event is None

    def test_never_evaluated_unit_ok(self):
        unit = make_running_unit(room_temperature=24.0)
        assert evaluate(unit, _history(25.0, 24.0), NOW).outcome == AlertOutcome.OK


class TestActiveAlerts:
    def test_filters_flagged_powered_on_units(self):
        units = [
            make_running_unit(unit_id="ac-1", working_flag=False, alert_raised_at=at(1)),
            make_running_unit(unit_id="ac-2", working_flag=True),
            make_running_unit(unit_id="ac-3"),
            make_unit(unit_id="ac-4", working_flag=False, alert_raised_at=at(1)),
        ]
        assert [u.unit_id for u in active_alerts(units)] == ["ac-1"]


class TestReferenceScenarios:
    def test_flat_readings_five_minutes_apart_raise(self):
        unit = make_running_unit(room_temperature=24.0)
        history = [reading(24.0, 0), reading(24.0, 5)]
        assert evaluate(unit, history, at(5)).outcome == AlertOutcome.RAISED

    def test_falling_readings_clear_alert_raised_before_window(self):
        unit = make_running_unit(room_temperature=23.5, working_flag=False, alert_raised_at=at(-2))
        history = [reading(24.0, 0), reading(23.5, 5)]
        result = evaluate(unit, history, at(5))
        assert result.outcome == AlertOutcome.CLEARED

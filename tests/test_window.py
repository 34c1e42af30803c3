"""Tests for src.alerts.window — reading retention rules."""

from __future__ import annotations

from src.alerts.window import append_reading, is_stale
from tests.conftest import at, make_running_unit, make_unit, reading


class TestAppendReading:
    def test_first_reading_kept(self):
        unit = make_running_unit()
        update = append_reading(unit, reading(25.0, 5), at(5))
        assert update.appended
        assert update.history == [reading(25.0, 5)]

    def test_unchanged_recent_reading_dropped(self):
        unit = make_running_unit(room_temperature_history=[reading(25.0, 5)])
        update = append_reading(unit, reading(25.05, 7), at(7))
        assert not update.appended
        assert not update.changed
        assert update.history == [reading(25.0, 5)]

    def test_changed_reading_kept(self):
        unit = make_running_unit(room_temperature_history=[reading(25.0, 5)])
        update = append_reading(unit, reading(24.8, 7), at(7))
        assert update.appended
        assert [r.temp for r in update.history] == [25.0, 24.8]

    def test_change_within_epsilon_ignored(self):
        unit = make_running_unit(room_temperature_history=[reading(25.0, 5)])
        update = append_reading(unit, reading(25.08, 7), at(7))
        assert not update.appended

    def test_unchanged_reading_kept_once_window_is_old(self):
        unit = make_running_unit(room_temperature_history=[reading(25.0, 5)])
        update = append_reading(unit, reading(25.0, 10), at(10))
        assert update.appended
        assert len(update.history) == 2

    def test_keeps_only_last_three(self):
        history = [reading(26.0, 1), reading(25.5, 2), reading(25.0, 3)]
        unit = make_running_unit(room_temperature_history=history)
        update = append_reading(unit, reading(24.0, 4), at(4))
        assert [r.temp for r in update.history] == [25.5, 25.0, 24.0]

    def test_history_sorted_before_compare(self):
        history = [reading(25.0, 3), reading(26.0, 1)]
        unit = make_running_unit(room_temperature_history=history)
        update = append_reading(unit, reading(25.0, 4), at(4))
        assert not update.appended
        assert [r.temp for r in update.history] == [26.0, 25.0]

    def test_powered_off_unit_unchanged(self):
        unit = make_unit(room_temperature_history=[reading(25.0, 1)])
        update = append_reading(unit, reading(20.0, 4), at(4))
        assert not update.changed
        assert update.history == [reading(25.0, 1)]

    def test_readings_before_power_on_cleared(self):
        unit = make_running_unit(
            started=at(30),
            room_temperature_history=[reading(27.0, 10), reading(27.5, 20)],
        )
        update = append_reading(unit, reading(27.5, 31), at(31))
        assert update.invalidated
        assert update.appended
        assert update.history == [reading(27.5, 31)]

    def test_does_not_mutate_unit(self):
        unit = make_running_unit(room_temperature_history=[reading(25.0, 5)])
        append_reading(unit, reading(24.0, 7), at(7))
        assert unit.room_temperature_history == [reading(25.0, 5)]


class TestIsStale:
    def test_empty_history(self):
        assert not is_stale([], make_running_unit())

    def test_powered_off_unit(self):
        assert not is_stale([reading(25.0, 1)], make_unit())

    def test_reading_at_power_on_is_current(self):
        assert not is_stale([reading(25.0, 0)], make_running_unit())

"""Tests for src.energy.report — snapshots, group report and CSV output."""

from __future__ import annotations

import pandas as pd
import pytest

from src.contracts.errors import GroupNotFoundError
from src.energy.report import (
    UNIT_REPORT_COLUMNS,
    group_report,
    groups_frame,
    unit_snapshot,
    units_frame,
    write_energy_report,
    write_fleet_state,
)
from src.energy.sweep import EnergySweep
from src.fleet.store import InMemoryFleetStore
from tests.conftest import at, make_running_unit, make_unit


@pytest.fixture
def fleet(store):
    store.add_unit(make_running_unit(unit_id="ac-2", group_id="grp-1"))
    store.add_unit(make_running_unit(unit_id="ac-1", group_id="grp-1", startup_active=False,
                                     mode="eco", set_temperature=26))
    store.add_unit(make_unit(unit_id="ac-3", group_id="grp-2", total_energy_kwh=4.0))
    return store


class TestUnitSnapshot:
    def test_startup_rate_shown_unadjusted(self):
        snap = unit_snapshot(make_running_unit(set_temperature=18))
        assert snap.current_rate_kwh_h == 1.6
        assert snap.temperature_multiplier == 1.0

    def test_normal_rate_with_multiplier(self):
        snap = unit_snapshot(make_running_unit(startup_active=False, mode="eco", set_temperature=26))
        assert snap.base_rate_kwh_h == 0.8
        assert snap.temperature_multiplier == 0.9
        assert snap.current_rate_kwh_h == pytest.approx(0.72)

    def test_off_unit_zero_rate(self):
        snap = unit_snapshot(make_unit(total_energy_kwh=2.5))
        assert snap.current_rate_kwh_h == 0.0
        assert snap.total_energy_kwh == 2.5
        assert snap.last_energy_calculated_at == ""


class TestGroupReport:
    def test_members_and_counts(self, fleet):
        EnergySweep(fleet).run_fleet(at(10))
        report = group_report(fleet, "grp-1")
        assert report.name == "Lobby"
        assert report.total_units == 2
        assert report.active_units == 2
        assert report.total_energy_kwh == pytest.approx(
            round(1.6 / 6 + 0.72 / 6, 6)
        )
        assert report.last_aggregated_at == "2026-10-19T10:10:00Z"

    def test_unknown_group(self, fleet):
        with pytest.raises(GroupNotFoundError):
            group_report(fleet, "grp-9")


class TestFrames:
    def test_units_frame_sorted(self, fleet):
        df = units_frame(fleet)
        assert list(df.columns) == UNIT_REPORT_COLUMNS
        assert list(df["unit_id"]) == ["ac-1", "ac-2", "ac-3"]

    def test_empty_store(self, store):
        assert units_frame(store).empty
        groups = groups_frame(store)
        assert list(groups["member_sum_kwh"]) == [0.0, 0.0]

    def test_drift_until_aggregated(self, fleet):
        groups = groups_frame(fleet).set_index("group_id")
        assert groups.loc["grp-2", "drift_kwh"] == 4.0
        assert groups.loc["grp-1", "active_units"] == 2

        EnergySweep(fleet).run_fleet(at(10))
        groups = groups_frame(fleet).set_index("group_id")
        assert groups.loc["grp-1", "drift_kwh"] == pytest.approx(0.0, abs=1e-6)

    def test_write_csv(self, fleet, tmp_path):
        write_energy_report(fleet, tmp_path / "out")
        units = pd.read_csv(tmp_path / "out" / "units_energy.csv")
        groups = pd.read_csv(tmp_path / "out" / "groups_energy.csv")
        assert len(units) == 3
        assert set(groups["group_id"]) == {"grp-1", "grp-2"}

    def test_state_snapshot_reloads(self, fleet, tmp_path):
        path = tmp_path / "state" / "fleet_state.json"
        write_fleet_state(fleet, path)
        reloaded = InMemoryFleetStore.load(path)
        assert reloaded.get_unit("ac-3").total_energy_kwh == 4.0
        assert [p.name for p in path.parent.iterdir()] == ["fleet_state.json"]

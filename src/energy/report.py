"""Energy read models: per-unit rate snapshot and per-group energy report."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from src.contracts.unit import Unit
from src.energy.rates import rate_breakdown
from src.fleet.store import FleetStore, InMemoryFleetStore
from src.shared.clock import format_ts
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)

UNIT_REPORT_COLUMNS = [
    "unit_id",
    "name",
    "group_id",
    "capacity_class",
    "mode",
    "set_temperature",
    "power_state",
    "startup_active",
    "current_rate_kwh_h",
    "base_rate_kwh_h",
    "temperature_multiplier",
    "total_energy_kwh",
    "last_energy_calculated_at",
]


@dataclass(slots=True)
class UnitEnergySnapshot:
    """Current rate and running total for one unit."""

    unit_id: str
    name: str
    group_id: str | None
    capacity_class: float
    mode: str
    set_temperature: float
    power_state: bool
    startup_active: bool
    current_rate_kwh_h: float
    base_rate_kwh_h: float
    temperature_multiplier: float
    total_energy_kwh: float
    last_energy_calculated_at: str

    def to_row(self) -> dict[str, Any]:
        return {c: getattr(self, c) for c in UNIT_REPORT_COLUMNS}


@dataclass(slots=True)
class GroupEnergyReport:
    group_id: str
    name: str
    total_energy_kwh: float
    last_aggregated_at: str
    total_units: int = 0
    active_units: int = 0
    units: list[UnitEnergySnapshot] = field(default_factory=list)


def unit_snapshot(unit: Unit, settings: FleetSettings = DEFAULT_SETTINGS) -> UnitEnergySnapshot:
    rb = rate_breakdown(unit, settings)
    return UnitEnergySnapshot(
        unit_id=unit.unit_id,
        name=unit.name,
        group_id=unit.group_id,
        capacity_class=unit.capacity_class,
        mode=unit.mode,
        set_temperature=unit.set_temperature,
        power_state=unit.power_state,
        startup_active=unit.startup_active,
        current_rate_kwh_h=round(rb.current_rate, 4),
        base_rate_kwh_h=round(rb.base_rate, 4),
        temperature_multiplier=round(rb.temperature_multiplier, 4),
        total_energy_kwh=round(unit.total_energy_kwh, 6),
        last_energy_calculated_at=format_ts(unit.last_energy_calculated_at),
    )


def group_report(
    store: FleetStore,
    group_id: str,
    settings: FleetSettings = DEFAULT_SETTINGS,
) -> GroupEnergyReport:
    """Stored group total plus its members' snapshots.

    Raises:
        GroupNotFoundError: unknown group.
    """
    group = store.get_group(group_id)
    members = store.find_units_by_group(group_id)
    return GroupEnergyReport(
        group_id=group.group_id,
        name=group.name,
        total_energy_kwh=round(group.total_energy_kwh, 6),
        last_aggregated_at=format_ts(group.last_aggregated_at),
        total_units=len(members),
        active_units=sum(1 for u in members if u.power_state),
        units=[unit_snapshot(u, settings) for u in members],
    )


def units_frame(store: FleetStore, settings: FleetSettings = DEFAULT_SETTINGS) -> pd.DataFrame:
    """One row per unit, sorted by group then unit id."""
    rows = [unit_snapshot(u, settings).to_row() for u in store.list_units()]
    df = pd.DataFrame(rows, columns=UNIT_REPORT_COLUMNS)
    if df.empty:
        return df
    return df.sort_values(["group_id", "unit_id"], na_position="last").reset_index(drop=True)


def groups_frame(store: FleetStore) -> pd.DataFrame:
    """Stored group totals next to the live sum of member totals.

    ``drift_kwh`` is non-zero only while a group has not been re-aggregated
    since one of its members was charged.
    """
    units = units_frame(store)
    live = (
        units.groupby("group_id")["total_energy_kwh"].sum()
        if not units.empty
        else pd.Series(dtype=float)
    )
    active = (
        units[units["power_state"]].groupby("group_id")["unit_id"].count()
        if not units.empty
        else pd.Series(dtype=int)
    )
    rows = []
    for g in store.list_groups():
        member_sum = float(live.get(g.group_id, 0.0))
        rows.append(
            {
                "group_id": g.group_id,
                "name": g.name,
                "total_energy_kwh": round(g.total_energy_kwh, 6),
                "member_sum_kwh": round(member_sum, 6),
                "drift_kwh": round(member_sum - g.total_energy_kwh, 6),
                "active_units": int(active.get(g.group_id, 0)),
                "last_aggregated_at": format_ts(g.last_aggregated_at),
            }
        )
    return pd.DataFrame(rows)


# ═══════════════════════════════════════════════════════════════════════════
#  Writers
# ═══════════════════════════════════════════════════════════════════════════


def _atomic_write(path: Path, content: str) -> None:
    """Write *content* to a temp file beside *path*, then replace *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def write_energy_report(store: FleetStore, out_dir: str | Path, settings: FleetSettings = DEFAULT_SETTINGS) -> None:
    """Write ``units_energy.csv`` and ``groups_energy.csv`` into *out_dir*."""
    out = Path(out_dir)
    units = units_frame(store, settings)
    groups = groups_frame(store)
    _atomic_write(out / "units_energy.csv", units.to_csv(index=False))
    _atomic_write(out / "groups_energy.csv", groups.to_csv(index=False))
    log.info("Wrote energy report → %s (%d units, %d groups)", out, len(units), len(groups))


def write_fleet_state(store: InMemoryFleetStore, path: str | Path) -> None:
    """Snapshot the whole store as JSON; the file reloads with ``InMemoryFleetStore.load``."""
    target = Path(path)
    _atomic_write(target, json.dumps(store.to_dict(), ensure_ascii=False, indent=2) + "\n")
    log.info("Wrote fleet state → %s", target)

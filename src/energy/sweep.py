"""Fleet Energy Sweep — targeted and fleet-wide accumulation passes.

Fleet-wide pass
───────────────
  1. load every powered-on unit and take its row lock (sorted by id);
  2. per unit: lazy repair → calculate (a failure is recorded, the pass
     continues);
  3. stage all unit writes concurrently;
  4. mark each affected parent group for re-aggregation at commit;
  5. commit; group totals are summed under the store lock, so members
     committed by an overlapping targeted pass are included.  Any failure
     in 3–5 discards the whole pass (CommitFailure); the next pass
     integrates from the last committed state, so energy is delayed but
     never lost or counted twice.

Targeted pass
─────────────
  Same calculate → commit → group update for a single unit, holding only
  that unit's row lock, so it can interleave with a fleet-wide pass over
  other units.
"""

from __future__ import annotations

import contextlib
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.contracts.enums import EnergyBranch
from src.contracts.errors import (
    CommitFailure,
    GroupNotFoundError,
    TransientComputeError,
    UnitNotFoundError,
)
from src.contracts.unit import Unit
from src.energy.accumulator import accumulation_fields, calculate, repair_tracking
from src.fleet.notifier import LoggingNotifier, Notifier, notify_safely
from src.fleet.store import FleetReader, FleetStore
from src.shared.clock import utcnow
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)


@dataclass(slots=True)
class UnitEnergyResult:
    unit_id: str
    group_id: str | None
    energy_delta: float
    total_energy_kwh: float
    startup_active: bool
    branch: EnergyBranch
    repaired: bool = False
    skipped: bool = False          # powered off and *then_apply* not applied


@dataclass
class SweepReport:
    """Outcome of one fleet-wide pass."""

    started_at: datetime
    finished_at: datetime | None = None
    results: list[UnitEnergyResult] = field(default_factory=list)
    errors: list[TransientComputeError] = field(default_factory=list)
    groups_updated: list[str] = field(default_factory=list)

    @property
    def total_delta_kwh(self) -> float:
        return sum(r.energy_delta for r in self.results)


class EnergySweep:
    """Drives the accumulator over one unit or the whole fleet."""

    def __init__(
        self,
        store: FleetStore,
        notifier: Notifier | None = None,
        settings: FleetSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings

    # ── per-unit computation ─────────────────────────────────────────────

    def _compute(self, unit: Unit, now: datetime) -> tuple[UnitEnergyResult, dict[str, Any]]:
        fields = repair_tracking(unit, now)
        calc = calculate(unit, now, self.settings)
        fields.update(accumulation_fields(unit, calc, now))
        result = UnitEnergyResult(
            unit_id=unit.unit_id,
            group_id=unit.group_id,
            energy_delta=calc.energy_delta,
            total_energy_kwh=fields["total_energy_kwh"],
            startup_active=calc.startup_active_after,
            branch=calc.branch,
            repaired="startup_started_at" in fields,
        )
        return result, fields

    def _aggregate_group(self, reader: FleetReader, group_id: str, now: datetime) -> bool:
        """Have the commit set a group's total to the sum of its members' totals."""
        try:
            self.store.get_group(group_id)
        except GroupNotFoundError:
            log.warning("Group %s not found — aggregate skipped", group_id)
            return False
        reader.aggregate_group(group_id, now)
        return True

    def _notify(self, results: list[UnitEnergyResult], now: datetime) -> None:
        for r in results:
            notify_safely(
                self.notifier.energy_updated, r.unit_id, r.energy_delta, r.total_energy_kwh, now
            )

    # ── targeted ─────────────────────────────────────────────────────────

    def run_unit(
        self,
        unit_id: str,
        now: datetime | None = None,
        then_apply: dict[str, Any] | None = None,
        apply_when_off: bool = True,
    ) -> UnitEnergyResult:
        """Accumulate one unit, then apply *then_apply* in the same commit.

        *then_apply* lets a control action change mode, temperature or
        power state atomically after the prior rate has been charged.
        With *apply_when_off* false a powered-off unit is left untouched.

        Raises:
            UnitNotFoundError: unknown unit.
            TransientComputeError: the calculation itself failed.
            CommitFailure: the write phase failed; nothing was persisted.
        """
        now = now or utcnow()
        with self.store.row_lock(unit_id):
            unit = self.store.get_unit(unit_id)
            if not unit.power_state:
                skipped = bool(then_apply) and not apply_when_off
                if then_apply and apply_when_off:
                    self.store.update_unit(unit_id, then_apply)
                return UnitEnergyResult(
                    unit_id, unit.group_id, 0.0, unit.total_energy_kwh,
                    unit.startup_active, EnergyBranch.IDLE, skipped=skipped,
                )

            try:
                result, fields = self._compute(unit, now)
            except Exception as exc:
                raise TransientComputeError(unit_id, exc) from exc
            if then_apply:
                fields.update(then_apply)

            try:
                with self.store.transaction() as tx:
                    tx.update_unit(unit_id, fields)
                    if unit.group_id:
                        self._aggregate_group(tx, unit.group_id, now)
            except Exception as exc:
                log.error("Energy commit failed for unit %s: %s", unit_id, exc)
                raise CommitFailure(f"Targeted energy sweep for {unit_id} failed: {exc}") from exc

        log.info(
            "Unit %s: +%.4f kWh (%s), total %.4f kWh",
            unit_id, result.energy_delta, result.branch.value, result.total_energy_kwh,
        )
        self._notify([result], now)
        return result

    # ── fleet-wide ───────────────────────────────────────────────────────

    def run_fleet(self, now: datetime | None = None) -> SweepReport:
        """Accumulate every powered-on unit and refresh group totals atomically.

        Raises:
            CommitFailure: staging, aggregation or commit failed; no unit or
                group write from this pass was persisted.
        """
        now = now or utcnow()
        report = SweepReport(started_at=now)
        units = sorted(self.store.find_powered_on_units(), key=lambda u: u.unit_id)
        log.info("Energy sweep: %d powered-on units", len(units))
        if not units:
            report.finished_at = utcnow()
            return report

        staged: list[tuple[UnitEnergyResult, dict[str, Any]]] = []
        with contextlib.ExitStack() as locks:
            for u in units:
                locks.enter_context(self.store.row_lock(u.unit_id))

            try:
                with self.store.transaction() as tx:
                    for u in units:
                        try:
                            fresh = tx.get_unit(u.unit_id)
                            if not fresh.power_state:
                                continue
                            staged.append(self._compute(fresh, now))
                        except UnitNotFoundError as exc:
                            report.errors.append(TransientComputeError(u.unit_id, exc))
                            log.warning("Unit %s disappeared during sweep", u.unit_id)
                        except Exception as exc:
                            report.errors.append(TransientComputeError(u.unit_id, exc))
                            log.error("Failed to calculate energy for unit %s: %s", u.unit_id, exc)

                    group_ids = sorted({r.group_id for r, _ in staged if r.group_id})
                    with ThreadPoolExecutor(max_workers=self.settings.sweep_workers) as pool:
                        list(pool.map(lambda s: tx.update_unit(s[0].unit_id, s[1]), staged))
                        list(pool.map(lambda g: self._aggregate_group(tx, g, now), group_ids))
            except Exception as exc:
                log.error("Energy sweep rolled back (%d units staged): %s", len(staged), exc)
                raise CommitFailure(f"Fleet energy sweep failed: {exc}") from exc

        report.results = [r for r, _ in staged]
        report.groups_updated = group_ids
        report.finished_at = utcnow()
        log.info(
            "Energy sweep committed: %d units, %d groups, +%.4f kWh, %d errors",
            len(report.results),
            len(report.groups_updated),
            report.total_delta_kwh,
            len(report.errors),
        )
        self._notify(report.results, now)
        return report

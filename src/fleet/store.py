"""Persistence collaborator — unit / group records with atomic multi-row writes.

``FleetStore`` is the interface the energy and alert modules depend on.
``InMemoryFleetStore`` is the reference implementation used by the CLI
and the tests: every read returns a detached copy, writes inside
``transaction()`` are staged and applied together on commit, and
``row_lock(unit_id)`` serialises read-calculate-write cycles per unit.
"""

from __future__ import annotations

import contextlib
import copy
import dataclasses
import logging
import threading
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from src.contracts.errors import GroupNotFoundError, UnitNotFoundError
from src.contracts.unit import ParentGroup, Unit
from src.shared.config_loader import load_yaml

log = logging.getLogger(__name__)

_UNIT_FIELDS = frozenset(f.name for f in dataclasses.fields(Unit)) - {"unit_id"}
_GROUP_FIELDS = frozenset(f.name for f in dataclasses.fields(ParentGroup)) - {"group_id"}


class FleetReader(Protocol):
    def get_unit(self, unit_id: str) -> Unit: ...

    def find_units_by_group(self, group_id: str) -> list[Unit]: ...

    def update_unit(self, unit_id: str, fields: dict[str, Any]) -> None: ...

    def update_group(self, group_id: str, fields: dict[str, Any]) -> None: ...

    def aggregate_group(self, group_id: str, at: datetime) -> None: ...


class FleetStore(FleetReader, Protocol):
    def find_powered_on_units(self) -> list[Unit]: ...

    def get_group(self, group_id: str) -> ParentGroup: ...

    def list_units(self) -> list[Unit]: ...

    def list_groups(self) -> list[ParentGroup]: ...

    def transaction(self) -> contextlib.AbstractContextManager[StoreTransaction]: ...

    def row_lock(self, unit_id: str) -> contextlib.AbstractContextManager[None]: ...


def _check_fields(fields: dict[str, Any], allowed: frozenset[str], kind: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {kind} field(s): {', '.join(sorted(unknown))}")


def _check_monotonic(current: Unit, fields: dict[str, Any]) -> None:
    total = fields.get("total_energy_kwh")
    if total is not None and total < current.total_energy_kwh:
        raise ValueError(
            f"Unit {current.unit_id}: total energy cannot decrease "
            f"({current.total_energy_kwh:.6f} → {total:.6f})"
        )


class StoreTransaction:
    """Staged writes against an InMemoryFleetStore.

    Reads through the transaction see its own staged writes. Staging is
    thread-safe so a sweep may stage rows from a worker pool.
    """

    def __init__(self, store: InMemoryFleetStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self.unit_writes: dict[str, dict[str, Any]] = {}
        self.group_writes: dict[str, dict[str, Any]] = {}
        self.group_aggregates: dict[str, datetime] = {}

    def _overlay(self, unit: Unit) -> Unit:
        staged = self.unit_writes.get(unit.unit_id)
        if staged:
            for name, value in staged.items():
                setattr(unit, name, copy.deepcopy(value))
        return unit

    def get_unit(self, unit_id: str) -> Unit:
        unit = self._store.get_unit(unit_id)
        with self._lock:
            return self._overlay(unit)

    def find_units_by_group(self, group_id: str) -> list[Unit]:
        units = self._store.find_units_by_group(group_id)
        with self._lock:
            return [self._overlay(u) for u in units]

    def update_unit(self, unit_id: str, fields: dict[str, Any]) -> None:
        _check_fields(fields, _UNIT_FIELDS, "unit")
        with self._lock:
            self.unit_writes.setdefault(unit_id, {}).update(copy.deepcopy(fields))

    def update_group(self, group_id: str, fields: dict[str, Any]) -> None:
        _check_fields(fields, _GROUP_FIELDS, "group")
        with self._lock:
            self.group_writes.setdefault(group_id, {}).update(fields)

    def aggregate_group(self, group_id: str, at: datetime) -> None:
        """Set *group_id*'s total to its members' sum when the transaction commits.

        The sum is taken under the store lock after the unit writes are
        applied, so concurrent transactions on other members are included.
        """
        with self._lock:
            self.group_aggregates[group_id] = at


class InMemoryFleetStore:
    """Thread-safe in-process store."""

    def __init__(
        self,
        units: list[Unit] | None = None,
        groups: list[ParentGroup] | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._units: dict[str, Unit] = {}
        self._groups: dict[str, ParentGroup] = {}
        self._row_locks: dict[str, threading.Lock] = {}
        for g in groups or []:
            self.add_group(g)
        for u in units or []:
            self.add_unit(u)

    # ── seeding ──────────────────────────────────────────────────────────

    def add_unit(self, unit: Unit) -> None:
        with self._lock:
            self._units[unit.unit_id] = copy.deepcopy(unit)

    def add_group(self, group: ParentGroup) -> None:
        with self._lock:
            self._groups[group.group_id] = copy.deepcopy(group)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryFleetStore:
        """Build from ``{"groups": [...], "units": [...]}``."""
        groups = [ParentGroup.from_dict(g) for g in data.get("groups", [])]
        units = [Unit.from_dict(u) for u in data.get("units", [])]
        store = cls(units=units, groups=groups)
        log.info("Fleet store seeded: %d units in %d groups", len(units), len(groups))
        return store

    @classmethod
    def load(cls, path: str | Path) -> InMemoryFleetStore:
        """Load a fleet snapshot file (YAML or JSON)."""
        return cls.from_dict(load_yaml(path))

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "groups": [g.to_dict() for g in self._groups.values()],
                "units": [u.to_dict() for u in self._units.values()],
            }

    # ── reads ────────────────────────────────────────────────────────────

    def get_unit(self, unit_id: str) -> Unit:
        with self._lock:
            unit = self._units.get(unit_id)
            if unit is None:
                raise UnitNotFoundError(unit_id)
            return copy.deepcopy(unit)

    def list_units(self) -> list[Unit]:
        with self._lock:
            return [copy.deepcopy(u) for u in self._units.values()]

    def find_powered_on_units(self) -> list[Unit]:
        with self._lock:
            return [copy.deepcopy(u) for u in self._units.values() if u.power_state]

    def find_units_by_group(self, group_id: str) -> list[Unit]:
        with self._lock:
            return [copy.deepcopy(u) for u in self._units.values() if u.group_id == group_id]

    def get_group(self, group_id: str) -> ParentGroup:
        with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                raise GroupNotFoundError(group_id)
            return copy.deepcopy(group)

    def list_groups(self) -> list[ParentGroup]:
        with self._lock:
            return [copy.deepcopy(g) for g in self._groups.values()]

    # ── single-row writes ────────────────────────────────────────────────

    def update_unit(self, unit_id: str, fields: dict[str, Any]) -> None:
        _check_fields(fields, _UNIT_FIELDS, "unit")
        with self._lock:
            unit = self._units.get(unit_id)
            if unit is None:
                raise UnitNotFoundError(unit_id)
            _check_monotonic(unit, fields)
            for name, value in fields.items():
                setattr(unit, name, copy.deepcopy(value))

    def update_group(self, group_id: str, fields: dict[str, Any]) -> None:
        _check_fields(fields, _GROUP_FIELDS, "group")
        with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                raise GroupNotFoundError(group_id)
            for name, value in fields.items():
                setattr(group, name, value)

    # ── locking / transactions ───────────────────────────────────────────

    @contextlib.contextmanager
    def row_lock(self, unit_id: str) -> Iterator[None]:
        """Exclusive lock on one unit's row for a read-modify-write cycle."""
        with self._lock:
            lock = self._row_locks.setdefault(unit_id, threading.Lock())
        with lock:
            yield

    @contextlib.contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Stage writes; commit all on clean exit, discard all on error."""
        tx = StoreTransaction(self)
        try:
            yield tx
        except BaseException:
            log.warning(
                "Transaction rolled back (%d unit, %d group writes discarded)",
                len(tx.unit_writes), len(tx.group_writes) + len(tx.group_aggregates),
            )
            raise
        self._commit(tx)

    def _commit(self, tx: StoreTransaction) -> None:
        with self._lock:
            # validate everything before touching any row
            for unit_id, fields in tx.unit_writes.items():
                unit = self._units.get(unit_id)
                if unit is None:
                    raise UnitNotFoundError(unit_id)
                _check_monotonic(unit, fields)
            for group_id in (*tx.group_writes, *tx.group_aggregates):
                if group_id not in self._groups:
                    raise GroupNotFoundError(group_id)

            for unit_id, fields in tx.unit_writes.items():
                unit = self._units[unit_id]
                for name, value in fields.items():
                    setattr(unit, name, value)
            for group_id, fields in tx.group_writes.items():
                group = self._groups[group_id]
                for name, value in fields.items():
                    setattr(group, name, value)
            for group_id, at in tx.group_aggregates.items():
                group = self._groups[group_id]
                group.total_energy_kwh = sum(
                    u.total_energy_kwh for u in self._units.values() if u.group_id == group_id
                )
                group.last_aggregated_at = at
        log.debug(
            "Transaction committed: %d units, %d groups",
            len(tx.unit_writes), len(tx.group_writes) + len(tx.group_aggregates),
        )

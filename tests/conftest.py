"""Shared fixtures for the fleet energy / cooling-alert tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from src.contracts.alert import AlertEvent
from src.contracts.unit import ParentGroup, Reading, Unit
from src.fleet.store import InMemoryFleetStore

T0 = datetime(2026, 10, 19, 10, 0, 0, tzinfo=UTC)


# ── Timestamp helpers ────────────────────────────────────────────────────


def at(minutes: float = 0, seconds: float = 0, base: datetime = T0) -> datetime:
    """Return *base* shifted by *minutes* and *seconds*."""
    return base + timedelta(minutes=minutes, seconds=seconds)


def reading(temp: float, minutes: float = 0) -> Reading:
    return Reading(temp=temp, timestamp=at(minutes))


# ── Helper: create records with sensible defaults ────────────────────────


def make_unit(
    *,
    unit_id: str = "ac-1",
    name: str = "",
    group_id: str | None = "grp-1",
    capacity_class: float = 1.0,
    mode: str = "high",
    set_temperature: float = 24.0,
    created_at: datetime | None = None,
    power_state: bool = False,
    startup_active: bool = False,
    startup_started_at: datetime | None = None,
    last_energy_calculated_at: datetime | None = None,
    last_power_changed_at: datetime | None = None,
    total_energy_kwh: float = 0.0,
    room_temperature: float | None = None,
    room_temperature_history: list[Reading] | None = None,
    working_flag: bool | None = None,
    alert_raised_at: datetime | None = None,
) -> Unit:
    return Unit(
        unit_id=unit_id,
        name=name,
        group_id=group_id,
        capacity_class=capacity_class,
        mode=mode,
        set_temperature=set_temperature,
        created_at=created_at,
        power_state=power_state,
        startup_active=startup_active,
        startup_started_at=startup_started_at,
        last_energy_calculated_at=last_energy_calculated_at,
        last_power_changed_at=last_power_changed_at,
        total_energy_kwh=total_energy_kwh,
        room_temperature=room_temperature,
        room_temperature_history=list(room_temperature_history or []),
        working_flag=working_flag,
        alert_raised_at=alert_raised_at,
    )


def make_running_unit(*, started: datetime = T0, **kwargs) -> Unit:
    """A unit switched on at *started*, as FleetControls.power_on leaves it."""
    defaults = {
        "power_state": True,
        "startup_active": True,
        "startup_started_at": started,
        "last_energy_calculated_at": started,
        "last_power_changed_at": started,
    }
    defaults.update(kwargs)
    return make_unit(**defaults)


def make_group(*, group_id: str = "grp-1", name: str = "Lobby", total_energy_kwh: float = 0.0) -> ParentGroup:
    return ParentGroup(group_id=group_id, name=name, total_energy_kwh=total_energy_kwh)


# ── Collaborator doubles ─────────────────────────────────────────────────


class RecordingNotifier:
    """Keeps every notification in memory."""

    def __init__(self) -> None:
        self.alerts: list[AlertEvent] = []
        self.energy: list[tuple[str, float, float, datetime]] = []
        self.telemetry: list[tuple[str, float, datetime]] = []

    def alert_raised(self, event: AlertEvent) -> None:
        self.alerts.append(event)

    def energy_updated(self, unit_id, energy_delta, total_energy_kwh, at) -> None:
        self.energy.append((unit_id, energy_delta, total_energy_kwh, at))

    def telemetry_updated(self, unit_id, room_temperature, at) -> None:
        self.telemetry.append((unit_id, room_temperature, at))


class BrokenNotifier:
    """Every delivery fails."""

    def alert_raised(self, event):
        raise ConnectionError("socket closed")

    def energy_updated(self, unit_id, energy_delta, total_energy_kwh, at):
        raise ConnectionError("socket closed")

    def telemetry_updated(self, unit_id, room_temperature, at):
        raise ConnectionError("socket closed")


# ── Fixtures ─────────────────────────────────────────────────────────────


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> InMemoryFleetStore:
    """Two groups; no units."""
    return InMemoryFleetStore(
        groups=[make_group(group_id="grp-1", name="Lobby"), make_group(group_id="grp-2", name="Office")]
    )

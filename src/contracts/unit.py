"""Unit and ParentGroup records: the fields the energy and alert core own."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.shared.clock import format_ts, parse_ts


@dataclass(frozen=True, slots=True)
class Reading:
    """One room-temperature sample kept in a unit's telemetry window."""

    temp: float
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"temp": self.temp, "timestamp": format_ts(self.timestamp)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reading:
        return cls(temp=float(data["temp"]), timestamp=parse_ts(data["timestamp"]))


@dataclass(slots=True)
class Unit:
    """One physical air-conditioning unit."""

    # ── identity / configuration ──
    unit_id: str
    name: str = ""
    group_id: str | None = None
    capacity_class: float = 1.0   # tons: 0.5 | 1 | 1.5 | 2
    mode: str = "high"            # eco | normal | high
    set_temperature: float = 24.0
    created_at: datetime | None = None

    # ── power / energy tracking ──
    power_state: bool = False
    startup_active: bool = False
    startup_started_at: datetime | None = None
    last_energy_calculated_at: datetime | None = None
    last_power_changed_at: datetime | None = None
    total_energy_kwh: float = 0.0

    # ── telemetry / alert state ──
    room_temperature: float | None = None
    room_temperature_history: list[Reading] = field(default_factory=list)
    working_flag: bool | None = None   # None = never evaluated
    alert_raised_at: datetime | None = None

    @property
    def powered_on_at(self) -> datetime | None:
        """When the unit was last switched on, or None if unknown."""
        if self.startup_started_at is not None:
            return self.startup_started_at
        if self.power_state:
            return self.last_power_changed_at
        return None

    # ── serialisation ─────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "name": self.name,
            "group_id": self.group_id,
            "capacity_class": self.capacity_class,
            "mode": self.mode,
            "set_temperature": self.set_temperature,
            "created_at": format_ts(self.created_at),
            "power_state": self.power_state,
            "startup_active": self.startup_active,
            "startup_started_at": format_ts(self.startup_started_at),
            "last_energy_calculated_at": format_ts(self.last_energy_calculated_at),
            "last_power_changed_at": format_ts(self.last_power_changed_at),
            "total_energy_kwh": round(self.total_energy_kwh, 6),
            "room_temperature": self.room_temperature,
            "room_temperature_history": [r.to_dict() for r in self.room_temperature_history],
            "working_flag": self.working_flag,
            "alert_raised_at": format_ts(self.alert_raised_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Unit:
        """Build a Unit from a fleet-file row; missing keys take defaults."""
        room = data.get("room_temperature")
        return cls(
            unit_id=str(data["unit_id"]),
            name=data.get("name", ""),
            group_id=data.get("group_id"),
            capacity_class=float(data.get("capacity_class", 1.0)),
            mode=data.get("mode") or "high",
            set_temperature=float(data.get("set_temperature", 24.0)),
            created_at=parse_ts(data.get("created_at")),
            power_state=bool(data.get("power_state", False)),
            startup_active=bool(data.get("startup_active", False)),
            startup_started_at=parse_ts(data.get("startup_started_at")),
            last_energy_calculated_at=parse_ts(data.get("last_energy_calculated_at")),
            last_power_changed_at=parse_ts(data.get("last_power_changed_at")),
            total_energy_kwh=float(data.get("total_energy_kwh", 0.0)),
            room_temperature=float(room) if room is not None else None,
            room_temperature_history=[
                Reading.from_dict(r) for r in data.get("room_temperature_history", [])
            ],
            working_flag=data.get("working_flag"),
            alert_raised_at=parse_ts(data.get("alert_raised_at")),
        )


@dataclass(slots=True)
class ParentGroup:
    """Aggregation entity whose total is the sum of its member units'."""

    group_id: str
    name: str = ""
    total_energy_kwh: float = 0.0
    last_aggregated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "name": self.name,
            "total_energy_kwh": round(self.total_energy_kwh, 6),
            "last_aggregated_at": format_ts(self.last_aggregated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParentGroup:
        return cls(
            group_id=str(data["group_id"]),
            name=data.get("name", ""),
            total_energy_kwh=float(data.get("total_energy_kwh", 0.0)),
            last_aggregated_at=parse_ts(data.get("last_aggregated_at")),
        )

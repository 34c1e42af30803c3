"""YAML / JSON loading for fleet settings and fleet snapshots."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Read a mapping document from *path*.

    JSON is a subset of YAML, so ``fleet_state.json`` snapshots load here too.
    An empty file yields ``{}``.

    Raises:
        FileNotFoundError: *path* does not exist.
        ValueError: the top level is not a mapping.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{p.name}: expected a mapping at top level, got {type(data).__name__}")
    log.debug("Loaded %s (%d top-level keys)", p.name, len(data))
    return data


def load_settings(path: str | Path | None) -> FleetSettings:
    """Build FleetSettings from ``fleet.yaml``; ``None`` returns the defaults."""
    if path is None:
        return DEFAULT_SETTINGS
    settings = FleetSettings.from_dict(load_yaml(path))
    log.info(
        "Fleet settings loaded from %s: %d capacity classes, startup=%.0f min, "
        "energy sweep every %.0f min, alert sweep every %.0f min",
        path,
        len(settings.base_rates),
        settings.startup_duration_min,
        settings.energy_sweep_interval_min,
        settings.alert_sweep_interval_min,
    )
    return settings

"""CLI entry-point for the fleet energy / cooling-alert core.

Usage examples
--------------
# One energy + alert pass over a fleet snapshot, report into out/:
python -m src.fleet.cli --fleet data/fleet.yaml --power-on ac-101,ac-201

# Keep sweeping on the configured intervals until Ctrl+C:
python -m src.fleet.cli --fleet data/fleet.yaml --watch
"""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from src.alerts.detector import active_alerts
from src.alerts.sweep import AlertSweep
from src.energy.report import write_energy_report, write_fleet_state
from src.energy.sweep import EnergySweep
from src.fleet.controls import FleetControls
from src.fleet.notifier import JsonlNotifier
from src.fleet.scheduler import FleetScheduler
from src.fleet.store import InMemoryFleetStore
from src.shared.config_loader import load_settings
from src.shared.logger import setup_logging

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fleet",
        description="Fleet core — energy accumulation and cooling-anomaly alerts",
    )
    p.add_argument(
        "--fleet",
        default="data/fleet.yaml",
        help="Fleet snapshot (YAML or JSON with 'groups' and 'units'). "
             "Default: data/fleet.yaml",
    )
    p.add_argument(
        "--config",
        default="config/fleet.yaml",
        help="Rate tables, intervals and alert windows. Default: config/fleet.yaml",
    )
    p.add_argument(
        "--out-dir",
        default="out",
        help="Output directory for reports and notifications. Default: out/",
    )
    p.add_argument(
        "--power-on",
        default="",
        help="Comma-separated unit ids to switch on before sweeping.",
    )
    p.add_argument(
        "--watch",
        action="store_true",
        default=False,
        help="Run both sweeps on their configured intervals until interrupted.",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. Default: INFO",
    )
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    settings = load_settings(args.config if Path(args.config).exists() else None)
    store = InMemoryFleetStore.load(args.fleet)
    out = Path(args.out_dir)
    out.mkdir(parents=True, exist_ok=True)
    notifier = JsonlNotifier(out / "notifications.jsonl")

    energy = EnergySweep(store, notifier, settings)
    alerts = AlertSweep(store, notifier, settings)
    controls = FleetControls(store, energy, notifier, settings)

    for unit_id in filter(None, (s.strip() for s in args.power_on.split(","))):
        controls.power_on(unit_id)

    scheduler = FleetScheduler(energy, alerts, settings)
    if args.watch:
        print(f"Fleet watch mode -> {args.fleet}")
        print(
            f"  energy sweep every {settings.energy_sweep_interval_min:g} min, "
            f"alert sweep every {settings.alert_sweep_interval_min:g} min"
        )
        print("  Press Ctrl+C to stop.")
        scheduler.start()
        try:
            while True:
                time.sleep(1.0)
        except KeyboardInterrupt:
            print("\nWatch stopped.")
        finally:
            scheduler.stop(timeout=5.0)
    else:
        scheduler.run_once()

    write_energy_report(store, out, settings)
    write_fleet_state(store, out / "fleet_state.json")
    flagged = active_alerts(store.list_units())
    if flagged:
        log.warning("Units not cooling: %s", ", ".join(u.unit_id for u in flagged))


if __name__ == "__main__":
    main()

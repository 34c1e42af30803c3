"""Fixed-interval scheduler for the fleet-wide sweeps.

Each job owns a ``running`` flag that is checked and set under a lock at
tick entry and cleared on exit.  A tick that arrives while the previous
one is still running is skipped, so a slow sweep never overlaps itself.
The flag guards one job only; control actions are never blocked by it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from src.alerts.sweep import AlertSweep
from src.energy.sweep import EnergySweep
from src.shared.settings import DEFAULT_SETTINGS, FleetSettings

log = logging.getLogger(__name__)


class PeriodicJob:
    """One named callback run every *interval_sec* on its own thread."""

    def __init__(self, name: str, interval_sec: float, func: Callable[[], Any]) -> None:
        self.name = name
        self.interval_sec = interval_sec
        self.func = func
        self.runs = 0
        self.skipped = 0
        self.failures = 0
        self._running = False
        self._guard = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._running

    def tick(self) -> bool:
        """Run the job once unless a previous tick is still in progress.

        Returns True when the job ran (successfully or not).
        """
        with self._guard:
            if self._running:
                self.skipped += 1
                log.info("%s: skipping, previous run still in progress", self.name)
                return False
            self._running = True

        started = time.monotonic()
        try:
            self.func()
            self.runs += 1
        except Exception:
            self.failures += 1
            log.exception("%s: run failed — will retry next interval", self.name)
        finally:
            with self._guard:
                self._running = False
        log.debug("%s: finished in %.2fs", self.name, time.monotonic() - started)
        return True

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_sec):
            self.tick()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        log.info("%s started (every %.0fs)", self.name, self.interval_sec)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log.info("%s stopped (runs=%d, skipped=%d, failures=%d)",
                 self.name, self.runs, self.skipped, self.failures)


class FleetScheduler:
    """Energy sweep and alert sweep, each on its own interval."""

    def __init__(
        self,
        energy: EnergySweep,
        alerts: AlertSweep,
        settings: FleetSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.energy_job = PeriodicJob(
            "energy-sweep", settings.energy_sweep_interval_min * 60, energy.run_fleet
        )
        self.alert_job = PeriodicJob(
            "alert-sweep", settings.alert_sweep_interval_min * 60, alerts.run
        )

    @property
    def jobs(self) -> list[PeriodicJob]:
        return [self.energy_job, self.alert_job]

    def start(self) -> None:
        for job in self.jobs:
            job.start()

    def stop(self, timeout: float | None = None) -> None:
        for job in self.jobs:
            job.stop(timeout)

    def run_once(self) -> None:
        """Tick every job immediately on the calling thread."""
        for job in self.jobs:
            job.tick()

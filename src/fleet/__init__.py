"""Fleet runtime: the collaborators around the energy and alert core.

Modules
───────
  store      — persistence (in-memory reference store, transactions, row locks)
  notifier   — best-effort alert / realtime notifications
  controls   — power / mode / temperature / telemetry control hooks
  scheduler  — fixed-interval sweeps with a per-job no-overlap guard
  cli        — argparse entry-point
"""

"""Cooling-anomaly detection over room-temperature telemetry.

Modules
───────
  window    — bounded, ordered per-unit reading history
  detector  — trend check, alert raise / auto-clear with suppression
  sweep     — fleet-wide append + evaluate pass
"""

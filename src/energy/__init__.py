"""Energy accounting for the air-conditioning fleet.

Modules
───────
  rates        — capacity × mode × temperature → kWh/h
  accumulator  — per-unit time integration with the startup transient
  sweep        — targeted and fleet-wide passes + group aggregation
  report       — per-unit rate snapshot and group energy report
"""

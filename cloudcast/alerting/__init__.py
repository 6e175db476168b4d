"""
Cloudcast Alerting.

Components:
- schemas: Alert types, severities, lifecycle status, history records
- engine: Threshold-crossing alert generation from sector deltas
- dedup: Cooldown per (sector, alert type) to prevent alert storms
- history: In-memory alert ledger with the acknowledge/dismiss lifecycle
"""

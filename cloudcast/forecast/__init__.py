"""
Forecast orchestration.

- orchestrator: per-tick sequencing of fusion, cascade and merge
- scheduler: periodic ticks and regeneration checks (APScheduler)
"""

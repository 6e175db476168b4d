"""
Cloudcast — Spatial cloudburst-risk forecasting.

Architecture:
    cloudcast/
    ├── schemas/         # Pydantic records (sensors, sectors, propagation events)
    ├── engine/          # Spatial-forecast engine (geometry, fusion, propagation)
    ├── forecast/        # Forecast orchestrator (per-tick sequencing)
    ├── alerting/        # Alert history, threshold alerts, dedup/cooldown
    ├── services/        # Store, sector read/update service, event stream
    ├── middleware/      # Error handling, request context
    └── api/             # FastAPI routers (HTTP layer)

Module Boundaries:
    - The engine is PURE — no clock, no I/O, no shared mutable state
    - Every "updated state" is a new mapping, never an in-place mutation
    - Propagation can only RAISE risk; lowering comes from fresh fusion only
    - Persistence and transport belong to collaborators, not the engine

Data Flow:
    Nodes → Partition → Sectors
    Readings → Fusion → Sector state → Cascade → Events → Monotone merge
    → Alerts / Stream records → Collaborators

Version: 1.0.0
"""

__version__ = "1.0.0"

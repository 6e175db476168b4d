"""
Cloudcast Spatial-Forecast Engine — pure computation over snapshots.

Components:
- geo: great-circle distance/bearing, local km projection
- geometry: Voronoi partition of nodes into sectors with adjacency
- fusion: ground + aerial readings → probability, confidence, source
- alert_level: shared probability → alert-level step function
- propagation: wind-driven risk transfer, cascade, monotone merge
- detection: cloudburst detection, pressure trend, aerial deployment
"""

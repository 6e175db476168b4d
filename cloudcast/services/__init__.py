"""
Cloudcast services: the collaborators around the engine.

- store: sensor/region records, validated at the read boundary
- sector_service: forecast read API, operator updates, tick driver
- event_stream: stream records handed to in-process subscribers
"""

"""
Wind Propagation Engine — downwind risk transfer between sectors.

Single hop:
  P_target = P_source × wind_factor × distance_decay
  decay    = 1 / (1 + 0.2 × d_km)
  delay    = d_km / (wind_speed × 0.06)   minutes

Wind factor is tiered on the angle between the wind direction and the
bearing from source to target centroid:
  ≤45° → 0.8   ≤90° → 0.5   ≤135° → 0.3   else → 0.1

The cascade is a breadth-first traversal over the neighbour graph with a
visited set: first arrival wins, so a sector is reached at most once per
cascade and the number of events never exceeds the number of sectors
minus one.

Application is monotone: propagated risk can only raise a sector's
probability, never lower it.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

import structlog

from cloudcast.config import Settings
from cloudcast.engine.alert_level import alert_level
from cloudcast.engine.geo import angle_difference, bearing_deg, haversine_km
from cloudcast.schemas.propagation import PropagationEvent
from cloudcast.schemas.sector import Sector
from cloudcast.schemas.sensor import Coordinates, WindData, as_utc

logger = structlog.get_logger(__name__)


# ── Configuration ─────────────────────────────────────────────────────────

DOWNWIND_THRESHOLD_DEG: float = 45.0
CROSSWIND_FAVORABLE_THRESHOLD_DEG: float = 90.0
CROSSWIND_THRESHOLD_DEG: float = 135.0

WIND_FACTORS: dict[str, float] = {
    "downwind": 0.8,
    "crosswind_favorable": 0.5,
    "crosswind": 0.3,
    "upwind": 0.1,
}

DISTANCE_DECAY_COEFFICIENT: float = 0.2
PROPAGATION_DELAY_COEFFICIENT: float = 0.06   # (m/s) → km/min
MIN_PROPAGATION_PROBABILITY: float = 1.0
MAX_PROPAGATION_HOPS: int = 4


def wind_factor(wind_direction: float, neighbor_bearing: float) -> float:
    """Tiered alignment factor. Tier boundaries belong to the lower tier."""
    diff = angle_difference(wind_direction, neighbor_bearing)
    if diff <= DOWNWIND_THRESHOLD_DEG:
        return WIND_FACTORS["downwind"]
    if diff <= CROSSWIND_FAVORABLE_THRESHOLD_DEG:
        return WIND_FACTORS["crosswind_favorable"]
    if diff <= CROSSWIND_THRESHOLD_DEG:
        return WIND_FACTORS["crosswind"]
    return WIND_FACTORS["upwind"]


def distance_decay(distance_km: float) -> float:
    """In (0, 1], strictly decreasing in distance; 1 at zero distance."""
    return 1.0 / (1.0 + max(distance_km, 0.0) * DISTANCE_DECAY_COEFFICIENT)


def propagation_delay(distance_km: float, wind_speed: float) -> float:
    """Minutes for risk to travel ``distance_km``; infinite without wind."""
    if wind_speed <= 0:
        return math.inf
    return distance_km / (wind_speed * PROPAGATION_DELAY_COEFFICIENT)


@dataclass(frozen=True)
class CascadeResult:
    """Events of one cascade (in BFS order) and the sectors they reach, source excluded."""
    events: list[PropagationEvent] = field(default_factory=list)
    affected_sectors: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PropagationArrow:
    """Centroid-to-centroid segment for visualising one event."""
    source: Coordinates
    target: Coordinates
    probability: float
    delay_minutes: float


class PropagationEngine:
    """
    Wind-driven propagation over a fixed sector snapshot.

    Pure: no method mutates its inputs. ``now`` is taken as a parameter
    everywhere a schedule is computed.
    """

    def __init__(
        self,
        max_hops: int = MAX_PROPAGATION_HOPS,
        min_probability: float = MIN_PROPAGATION_PROBABILITY,
    ):
        self.max_hops = max_hops
        self.min_probability = min_probability

    @classmethod
    def from_settings(cls, config: Settings) -> "PropagationEngine":
        return cls(
            max_hops=config.propagation_max_hops,
            min_probability=config.propagation_min_probability,
        )

    # ── A: single hop ─────────────────────────────────────────────────────

    def propagate_to_neighbor(
        self,
        source: Sector,
        target: Sector,
        wind: WindData,
        now: Optional[datetime] = None,
    ) -> Optional[PropagationEvent]:
        """
        Project ``source`` risk onto one neighbour.

        Returns None when the projected probability is below the minimum
        or the delay is not a finite positive number (no wind, or
        coincident centroids).
        """
        now = _now(now)
        bearing = bearing_deg(source.centroid, target.centroid)
        distance_km = haversine_km(source.centroid, target.centroid)

        wf = wind_factor(wind.direction, bearing)
        decay = distance_decay(distance_km)
        delay = propagation_delay(distance_km, wind.speed)
        probability = source.current_probability * wf * decay

        if probability < self.min_probability or not math.isfinite(delay) or delay <= 0:
            return None

        return PropagationEvent(
            source_sector_id=source.sector_id,
            target_sector_id=target.sector_id,
            propagated_probability=min(probability, 100.0),
            wind_factor=wf,
            distance_decay=decay,
            delay_minutes=delay,
            scheduled_time=now + timedelta(minutes=delay),
        )

    # ── B: fan-out ────────────────────────────────────────────────────────

    def propagate_from_sector(
        self,
        source: Sector,
        all_sectors: Mapping[str, Sector],
        wind: WindData,
        now: Optional[datetime] = None,
    ) -> list[PropagationEvent]:
        """Single hop to every neighbour present in ``all_sectors``."""
        now = _now(now)
        events: list[PropagationEvent] = []
        for neighbor_id in sorted(source.neighbors):
            if neighbor_id == source.sector_id:
                continue
            neighbor = all_sectors.get(neighbor_id)
            if neighbor is None:
                logger.warning(
                    "neighbor_missing_from_map",
                    sector_id=source.sector_id,
                    neighbor_id=neighbor_id,
                )
                continue
            event = self.propagate_to_neighbor(source, neighbor, wind, now)
            if event is not None:
                events.append(event)
        return events

    # ── C: cascade ────────────────────────────────────────────────────────

    def cascade(
        self,
        source: Sector,
        all_sectors: Mapping[str, Sector],
        wind: WindData,
        max_hops: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CascadeResult:
        """
        Breadth-first multi-hop propagation from ``source``.

        Each hop re-propagates the probability that arrived, not the
        origin's. Every event is scheduled at the shared ``now`` plus its
        own hop delay; delays do not accumulate along a path.
        """
        now = _now(now)
        hops = self.max_hops if max_hops is None else max_hops

        events: list[PropagationEvent] = []
        visited: set[str] = {source.sector_id}
        queue: deque[tuple[Sector, int]] = deque([(source, 0)])

        while queue:
            current, hop = queue.popleft()
            if hop >= hops:
                continue

            for event in self.propagate_from_sector(current, all_sectors, wind, now):
                if event.target_sector_id in visited:
                    continue
                visited.add(event.target_sector_id)
                events.append(event)

                carrier = all_sectors[event.target_sector_id].model_copy(
                    update={"current_probability": event.propagated_probability}
                )
                queue.append((carrier, hop + 1))

        logger.debug(
            "cascade_complete",
            source_sector_id=source.sector_id,
            n_events=len(events),
            max_hops=hops,
        )
        return CascadeResult(
            events=events,
            affected_sectors=frozenset(e.target_sector_id for e in events),
        )

    # ── D: monotone application ───────────────────────────────────────────

    def apply_events(
        self,
        sectors: Mapping[str, Sector],
        events: list[PropagationEvent],
        now: Optional[datetime] = None,
    ) -> dict[str, Sector]:
        """
        Raise targets to ``max(existing, propagated)``.

        Returns a new mapping; the input is untouched. Sectors whose value
        does not increase keep their record (and ``last_updated``) as is.
        Events for unknown targets are skipped.
        """
        now = _now(now)
        updated = dict(sectors)
        for event in events:
            sector = updated.get(event.target_sector_id)
            if sector is None:
                continue
            if event.propagated_probability > sector.current_probability:
                updated[event.target_sector_id] = sector.with_updates(
                    current_probability=event.propagated_probability,
                    alert_level=alert_level(event.propagated_probability),
                    last_updated=now,
                )
        return updated

    # ── Auxiliary queries ─────────────────────────────────────────────────

    def downwind_sectors(
        self,
        source: Sector,
        all_sectors: Mapping[str, Sector],
        wind_direction: float,
    ) -> list[Sector]:
        """Every other sector whose bearing lies within the downwind tier."""
        return [
            sector
            for sector_id, sector in sorted(all_sectors.items())
            if sector_id != source.sector_id
            and is_in_wind_path(source, sector, wind_direction, DOWNWIND_THRESHOLD_DEG)
        ]


# ── E: due / pending split ────────────────────────────────────────────────


def due_events(events: list[PropagationEvent], now: datetime) -> list[PropagationEvent]:
    now = as_utc(now)
    return [e for e in events if e.scheduled_time <= now]


def pending_events(events: list[PropagationEvent], now: datetime) -> list[PropagationEvent]:
    now = as_utc(now)
    return [e for e in events if e.scheduled_time > now]


def merge_pending(events: list[PropagationEvent]) -> list[PropagationEvent]:
    """
    One event per target: the higher probability wins, ties go to the
    earlier arrival. Targets keep the order of their first appearance.
    """
    best: dict[str, PropagationEvent] = {}
    for event in events:
        current = best.get(event.target_sector_id)
        if current is None or _outranks(event, current):
            best[event.target_sector_id] = event
    return list(best.values())


def _outranks(event: PropagationEvent, other: PropagationEvent) -> bool:
    if event.propagated_probability != other.propagated_probability:
        return event.propagated_probability > other.propagated_probability
    return event.scheduled_time < other.scheduled_time


def estimated_arrival_minutes(
    events: list[PropagationEvent],
    target_sector_id: str,
    now: datetime,
) -> Optional[int]:
    """Whole minutes until the earliest event for the target; 0 if due."""
    now = as_utc(now)
    matching = [e for e in events if e.target_sector_id == target_sector_id]
    if not matching:
        return None
    earliest = min(matching, key=lambda e: e.scheduled_time)
    remaining = (earliest.scheduled_time - now).total_seconds()
    return math.ceil(remaining / 60.0) if remaining > 0 else 0


def is_in_wind_path(
    source: Sector,
    target: Sector,
    wind_direction: float,
    tolerance_deg: float = DOWNWIND_THRESHOLD_DEG,
) -> bool:
    bearing = bearing_deg(source.centroid, target.centroid)
    return angle_difference(wind_direction, bearing) <= tolerance_deg


def propagation_arrows(
    events: list[PropagationEvent],
    sectors: Mapping[str, Sector],
) -> list[PropagationArrow]:
    arrows = []
    for event in events:
        source = sectors.get(event.source_sector_id)
        target = sectors.get(event.target_sector_id)
        if source is None or target is None:
            continue
        arrows.append(PropagationArrow(
            source=source.centroid,
            target=target.centroid,
            probability=event.propagated_probability,
            delay_minutes=event.delay_minutes,
        ))
    return arrows


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now else datetime.now(timezone.utc)

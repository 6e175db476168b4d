"""
Sector Geometry Engine — Voronoi partition of sensor nodes.

Turns a node set into a planar coverage graph:
- Project node coordinates onto a local km plane centred on the bounds
- Build a Voronoi tessellation seeded at each node (shapely/GEOS)
- Clip every cell to the bounding region
- Derive adjacency ONCE: neighbours share a boundary segment of
  non-zero length (touching at a single vertex does not count)

Deterministic: seeds are sorted by (lat, lng, node_id) before
tessellation, so repeated runs over the same input give equal sectors.
"""

import math
from datetime import datetime, timezone
from typing import Optional

import structlog
from shapely import STRtree
from shapely.geometry import MultiPoint, Point, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import voronoi_diagram

from cloudcast.engine.geo import from_projected, haversine_km, to_projected
from cloudcast.exceptions import DegenerateInputError
from cloudcast.schemas.sector import PredictionSource, Sector
from cloudcast.schemas.sensor import BoundingRegion, Coordinates, NodeStatus, SensorNode, as_utc

logger = structlog.get_logger(__name__)

# ── Configuration ─────────────────────────────────────────────────────────

DEFAULT_PADDING_KM: float = 15.0
MIN_SHARED_EDGE_KM: float = 1e-3      # 1 m of common boundary makes a neighbour
EDGE_TOLERANCE_KM: float = 1e-6       # absorbs floating-point noise on shared edges
MIN_CELL_AREA_KM2: float = 1e-9
COORD_DECIMALS: int = 9               # coincidence / output rounding (~0.1 mm)
REGENERATION_MOVE_KM: float = 0.1
KM_PER_DEGREE: float = 111.0


def sector_id_for(node_id: str) -> str:
    return f"sector_{node_id}"


class VoronoiPartitioner:
    """
    Partition sensor nodes into clipped Voronoi sectors with adjacency.

    Stateless: every call builds a fresh sector mapping.
    """

    def __init__(
        self,
        min_shared_edge_km: float = MIN_SHARED_EDGE_KM,
        edge_tolerance_km: float = EDGE_TOLERANCE_KM,
    ):
        self.min_shared_edge_km = min_shared_edge_km
        self.edge_tolerance_km = edge_tolerance_km

    def partition(
        self,
        nodes: list[SensorNode],
        bounds: BoundingRegion,
        now: Optional[datetime] = None,
    ) -> dict[str, Sector]:
        """
        Build one sector per node, clipped to ``bounds``.

        Raises:
            DegenerateInputError: no nodes, duplicate ids, coincident
                coordinates, or a cell that collapses to zero area.
        """
        now = as_utc(now) if now else datetime.now(timezone.utc)
        ordered = self._ordered_nodes(nodes)

        if len(ordered) == 1:
            node = ordered[0]
            sector = self._build_sector(
                node,
                centroid=bounds.center(),
                boundary=_bounds_ring(bounds),
                neighbors=frozenset(),
                now=now,
            )
            logger.info("sectors_partitioned", n_nodes=1, n_sectors=1, n_edges=0)
            return {sector.sector_id: sector}

        center_lat = bounds.center().latitude
        min_x, min_y = to_projected(bounds.min_lat, bounds.min_lng, center_lat)
        max_x, max_y = to_projected(bounds.max_lat, bounds.max_lng, center_lat)
        frame = box(min_x, min_y, max_x, max_y)

        seeds = [
            Point(to_projected(n.coordinates.latitude, n.coordinates.longitude, center_lat))
            for n in ordered
        ]
        diagram = voronoi_diagram(MultiPoint(seeds), envelope=frame)
        raw_cells = list(diagram.geoms)

        cells: list[Polygon] = []
        for node, seed in zip(ordered, seeds):
            owner = next((c for c in raw_cells if c.contains(seed)), None)
            if owner is None:
                raise DegenerateInputError(
                    f"No Voronoi cell found for node {node.node_id}",
                    node_ids=[node.node_id],
                )
            clipped = owner.intersection(frame)
            if (
                clipped.is_empty
                or not isinstance(clipped, Polygon)
                or clipped.area <= MIN_CELL_AREA_KM2
            ):
                raise DegenerateInputError(
                    f"Cell for node {node.node_id} collapses to zero area inside the bounds",
                    node_ids=[node.node_id],
                )
            cells.append(orient(clipped, sign=1.0))

        adjacency = self._adjacency(cells)

        sectors: dict[str, Sector] = {}
        for index, (node, cell) in enumerate(zip(ordered, cells)):
            c_lat, c_lng = from_projected(cell.centroid.x, cell.centroid.y, center_lat)
            sector = self._build_sector(
                node,
                centroid=Coordinates(
                    latitude=round(c_lat, COORD_DECIMALS),
                    longitude=round(c_lng, COORD_DECIMALS),
                ),
                boundary=_unproject_ring(cell, center_lat),
                neighbors=frozenset(sector_id_for(ordered[j].node_id) for j in adjacency[index]),
                now=now,
            )
            sectors[sector.sector_id] = sector

        n_edges = sum(len(a) for a in adjacency) // 2
        logger.info(
            "sectors_partitioned",
            n_nodes=len(ordered),
            n_sectors=len(sectors),
            n_edges=n_edges,
        )
        return sectors

    def _ordered_nodes(self, nodes: list[SensorNode]) -> list[SensorNode]:
        """Validate the node set and sort it for stable tie-breaking."""
        if not nodes:
            raise DegenerateInputError("At least one node with valid coordinates is required")

        seen_ids: set[str] = set()
        seen_coords: dict[tuple[float, float], str] = {}
        for node in nodes:
            if node.node_id in seen_ids:
                raise DegenerateInputError(
                    f"Duplicate node id: {node.node_id}", node_ids=[node.node_id]
                )
            seen_ids.add(node.node_id)

            key = (
                round(node.coordinates.latitude, COORD_DECIMALS),
                round(node.coordinates.longitude, COORD_DECIMALS),
            )
            if key in seen_coords:
                raise DegenerateInputError(
                    f"Nodes {seen_coords[key]} and {node.node_id} share coordinates",
                    node_ids=[seen_coords[key], node.node_id],
                )
            seen_coords[key] = node.node_id

        return sorted(
            nodes,
            key=lambda n: (n.coordinates.latitude, n.coordinates.longitude, n.node_id),
        )

    def _adjacency(self, cells: list[Polygon]) -> list[set[int]]:
        """Pairs of cells sharing a boundary segment of non-zero length."""
        tol = self.edge_tolerance_km
        tree = STRtree(cells)
        adjacency: list[set[int]] = [set() for _ in cells]

        for i, cell in enumerate(cells):
            grown = cell.buffer(tol)
            for j in tree.query(grown, predicate="intersects"):
                j = int(j)
                if j <= i:
                    continue
                shared = cells[j].boundary.intersection(grown).length
                if shared >= self.min_shared_edge_km:
                    adjacency[i].add(j)
                    adjacency[j].add(i)
        return adjacency

    def _build_sector(
        self,
        node: SensorNode,
        centroid: Coordinates,
        boundary: tuple[tuple[float, float], ...],
        neighbors: frozenset[str],
        now: datetime,
    ) -> Sector:
        source = (
            PredictionSource.GROUND
            if node.status == NodeStatus.ONLINE
            else PredictionSource.UNAVAILABLE
        )
        return Sector(
            sector_id=sector_id_for(node.node_id),
            node_id=node.node_id,
            name=node.display_name,
            centroid=centroid,
            node_coordinates=node.coordinates,
            boundary=boundary,
            neighbors=neighbors,
            prediction_source=source,
            last_updated=now,
        )


def _bounds_ring(bounds: BoundingRegion) -> tuple[tuple[float, float], ...]:
    """Counter-clockwise closed ring of (lng, lat) for the whole region."""
    return (
        (bounds.min_lng, bounds.min_lat),
        (bounds.max_lng, bounds.min_lat),
        (bounds.max_lng, bounds.max_lat),
        (bounds.min_lng, bounds.max_lat),
        (bounds.min_lng, bounds.min_lat),
    )


def _unproject_ring(cell: Polygon, center_lat: float) -> tuple[tuple[float, float], ...]:
    ring = []
    for x, y in cell.exterior.coords:
        lat, lng = from_projected(x, y, center_lat)
        ring.append((round(lng, COORD_DECIMALS), round(lat, COORD_DECIMALS)))
    return tuple(ring)


# ── Region helpers ────────────────────────────────────────────────────────


def bounds_from_nodes(
    nodes: list[SensorNode], padding_km: float = DEFAULT_PADDING_KM
) -> BoundingRegion:
    """Box around every node, grown by ``padding_km`` on each side."""
    if not nodes:
        raise DegenerateInputError("At least one node with valid coordinates is required")
    lats = [n.coordinates.latitude for n in nodes]
    lngs = [n.coordinates.longitude for n in nodes]
    mid_lat = (min(lats) + max(lats)) / 2
    pad_lat = padding_km / KM_PER_DEGREE
    pad_lng = padding_km / (KM_PER_DEGREE * max(math.cos(math.radians(mid_lat)), 1e-6))
    return BoundingRegion(
        min_lat=max(-90.0, min(lats) - pad_lat),
        max_lat=min(90.0, max(lats) + pad_lat),
        min_lng=max(-180.0, min(lngs) - pad_lng),
        max_lng=min(180.0, max(lngs) + pad_lng),
    )


def needs_regeneration(
    sectors: dict[str, Sector],
    nodes: list[SensorNode],
    move_threshold_km: float = REGENERATION_MOVE_KM,
) -> bool:
    """True when the node set changed or any node moved past the threshold."""
    by_node = {s.node_id: s for s in sectors.values()}
    if set(by_node) != {n.node_id for n in nodes} or len(by_node) != len(nodes):
        return True

    for node in nodes:
        sector = by_node[node.node_id]
        anchor = sector.node_coordinates or sector.centroid
        if haversine_km(anchor, node.coordinates) > move_threshold_km:
            return True
    return False


def find_nearby_sectors(
    sector_id: str, sectors: dict[str, Sector], max_distance_km: float
) -> list[str]:
    """Ids of sectors whose centroid lies within ``max_distance_km``."""
    origin = sectors.get(sector_id)
    if origin is None:
        return []
    return sorted(
        other_id
        for other_id, other in sectors.items()
        if other_id != sector_id
        and haversine_km(origin.centroid, other.centroid) <= max_distance_km
    )


def neighbor_sectors(sector_id: str, sectors: dict[str, Sector]) -> list[Sector]:
    """Direct neighbours present in the map, in id order."""
    sector = sectors.get(sector_id)
    if sector is None:
        return []
    return [sectors[n] for n in sorted(sector.neighbors) if n in sectors]


def sector_at_point(point: Coordinates, sectors: dict[str, Sector]) -> Optional[Sector]:
    """Sector with the nearest centroid (the owning cell for Voronoi sectors)."""
    if not sectors:
        return None
    return min(
        sectors.values(),
        key=lambda s: (haversine_km(point, s.centroid), s.sector_id),
    )


def sectors_to_geojson(sectors: dict[str, Sector]) -> dict:
    """FeatureCollection with one Polygon feature per sector."""
    features = []
    for sector_id in sorted(sectors):
        sector = sectors[sector_id]
        ring = [list(p) for p in sector.boundary]
        if ring and ring[0] != ring[-1]:
            ring.append(list(ring[0]))
        features.append({
            "type": "Feature",
            "properties": {
                "sectorId": sector.sector_id,
                "nodeId": sector.node_id,
                "probability": sector.current_probability,
                "alertLevel": sector.alert_level.value,
                "cloudburstDetected": sector.cloudburst_detected,
            },
            "geometry": {"type": "Polygon", "coordinates": [ring]},
        })
    return {"type": "FeatureCollection", "features": features}

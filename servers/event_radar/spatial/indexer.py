"""
Hierarchical point clustering for map rendering.

Greedy radius clustering in the style of Mapbox's supercluster. Points
are projected to Web Mercator unit space and clustered from max_zoom down
to min_zoom, each level merging the level above it. Every leaf and cluster
lives in one node arena and is addressed by its integer index; ids are
only meaningful for the build that produced them (see build_id).
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from ..errors import StaleIndexError
from ..models import ClusterNode, Event
from .kdindex import KDIndex

logger = structlog.get_logger()


@dataclass
class _Node:
    x: float
    y: float
    num_points: int = 1
    zoom: float = math.inf  # last zoom at which this node was processed
    parent_id: int = -1
    event_index: int = -1  # leaves only
    origin_zoom: int = -1  # clusters only: zoom at which it was formed
    children: list[int] = field(default_factory=list)

    @property
    def is_cluster(self) -> bool:
        return self.event_index < 0


def lng_x(lng: float) -> float:
    return lng / 360 + 0.5


def lat_y(lat: float) -> float:
    sin = math.sin(lat * math.pi / 180)
    if sin >= 1:
        return 0.0
    if sin <= -1:
        return 1.0
    y = 0.5 - 0.25 * math.log((1 + sin) / (1 - sin)) / math.pi
    return min(max(y, 0.0), 1.0)


def x_lng(x: float) -> float:
    return (x - 0.5) * 360


def y_lat(y: float) -> float:
    y2 = (180 - y * 360) * math.pi / 180
    return 360 * math.atan(math.exp(y2)) / math.pi - 90


class SpatialIndexer:
    """Rebuildable cluster index over the currently loaded events."""

    def __init__(
        self,
        radius: float = 40,
        extent: int = 512,
        min_zoom: int = 0,
        max_zoom: int = 16,
        min_points: int = 2,
        node_size: int = 64,
    ):
        """
        Args:
            radius: Cluster radius in pixels
            extent: Tile extent the radius is relative to
            min_zoom: Lowest zoom with its own cluster level
            max_zoom: Highest zoom at which points still cluster
            min_points: Smallest group that forms a cluster
            node_size: KD index leaf size
        """
        self.radius = radius
        self.extent = extent
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.min_points = min_points
        self.node_size = node_size

        self.build_id = 0
        self.events: list[Event] = []
        self._nodes: list[_Node] = []
        self._trees: dict[int, KDIndex] = {}
        self._event_positions: dict[str, int] = {}

    def load(self, events: Sequence[Event]) -> "SpatialIndexer":
        """Replace the index with one built from `events`.

        Events without coordinates are left out. Loading the same events
        again yields the same clusters under a new build_id.
        """
        self.build_id += 1
        self.events = [e for e in events if e.coordinates is not None]
        self._event_positions = {e.id: i for i, e in enumerate(self.events)}
        self._nodes = []
        self._trees = {}

        for i, event in enumerate(self.events):
            lng, lat = event.coordinates
            self._nodes.append(_Node(x=lng_x(lng), y=lat_y(lat), event_index=i))

        level = list(range(len(self._nodes)))
        self._trees[self.max_zoom + 1] = self._index(level)

        for zoom in range(self.max_zoom, self.min_zoom - 1, -1):
            level = self._cluster(level, self._trees[zoom + 1], zoom)
            self._trees[zoom] = self._index(level)

        logger.info(
            "spatial_index_built",
            build_id=self.build_id,
            points=len(self.events),
            skipped=len(events) - len(self.events),
            top_level_nodes=len(self._trees[self.min_zoom]),
        )
        return self

    def get_clusters(self, bbox: Sequence[float], zoom: float) -> list[ClusterNode]:
        """Clusters and points inside bbox = (west, south, east, north) at zoom.

        Boxes crossing the antimeridian (west > east after wrapping) are
        split in two.
        """
        west, south, east, north = bbox
        min_lng = ((west + 180) % 360) - 180
        min_lat = max(-90.0, min(90.0, south))
        max_lng = 180.0 if east == 180 else ((east + 180) % 360) - 180
        max_lat = max(-90.0, min(90.0, north))

        if east - west >= 360:
            min_lng, max_lng = -180.0, 180.0
        elif min_lng > max_lng:
            eastern = self.get_clusters((min_lng, min_lat, 180.0, max_lat), zoom)
            western = self.get_clusters((-180.0, min_lat, max_lng, max_lat), zoom)
            return eastern + western

        tree = self._trees.get(self._limit_zoom(zoom))
        if tree is None:
            return []

        ids = tree.range(lng_x(min_lng), lat_y(max_lat), lng_x(max_lng), lat_y(min_lat))
        return [self._to_cluster_node(node_id) for node_id in ids]

    def get_children(self, cluster_id: int, build_id: Optional[int] = None) -> list[ClusterNode]:
        """Nodes one level below a cluster."""
        node = self._cluster_node(cluster_id, build_id)
        return [self._to_cluster_node(child) for child in node.children]

    def get_leaves(self, cluster_id: int, build_id: Optional[int] = None) -> list[Event]:
        """All events under a cluster."""
        stack = [self._cluster_node(cluster_id, build_id)]
        leaves = []
        while stack:
            node = stack.pop()
            for child_id in node.children:
                child = self._nodes[child_id]
                if child.is_cluster:
                    stack.append(child)
                else:
                    leaves.append(self.events[child.event_index])
        return leaves

    def get_expansion_zoom(self, cluster_id: int, build_id: Optional[int] = None) -> int:
        """Lowest zoom at which the cluster splits into more than one node."""
        node = self._cluster_node(cluster_id, build_id)
        expansion_zoom = node.origin_zoom

        while expansion_zoom <= self.max_zoom:
            children = node.children
            expansion_zoom += 1
            if len(children) != 1:
                break
            node = self._nodes[children[0]]
            if not node.is_cluster:
                break

        return expansion_zoom

    def event(self, event_id: str) -> Optional[Event]:
        """Event with this id in the current build, if any."""
        position = self._event_positions.get(event_id)
        return self.events[position] if position is not None else None

    # Internals

    def _index(self, level: list[int]) -> KDIndex:
        return KDIndex(
            ((node_id, self._nodes[node_id].x, self._nodes[node_id].y) for node_id in level),
            node_size=self.node_size,
        )

    def _limit_zoom(self, zoom: float) -> int:
        return max(self.min_zoom, min(math.floor(zoom), self.max_zoom + 1))

    def _cluster(self, level: list[int], tree: KDIndex, zoom: int) -> list[int]:
        """Merge the nodes of one level into the next lower zoom's level."""
        r = self.radius / (self.extent * 2 ** zoom)
        next_level: list[int] = []

        for node_id in level:
            point = self._nodes[node_id]
            if point.zoom <= zoom:
                continue
            point.zoom = zoom

            neighbor_ids = tree.within(point.x, point.y, r)

            origin_points = point.num_points
            num_points = origin_points
            for neighbor_id in neighbor_ids:
                neighbor = self._nodes[neighbor_id]
                if neighbor.zoom > zoom:
                    num_points += neighbor.num_points

            if num_points > origin_points and num_points >= self.min_points:
                wx = point.x * origin_points
                wy = point.y * origin_points
                cluster_id = len(self._nodes)
                children = [node_id]

                for neighbor_id in neighbor_ids:
                    neighbor = self._nodes[neighbor_id]
                    if neighbor.zoom <= zoom:
                        continue
                    neighbor.zoom = zoom
                    wx += neighbor.x * neighbor.num_points
                    wy += neighbor.y * neighbor.num_points
                    neighbor.parent_id = cluster_id
                    children.append(neighbor_id)

                point.parent_id = cluster_id
                self._nodes.append(_Node(
                    x=wx / num_points,
                    y=wy / num_points,
                    num_points=num_points,
                    origin_zoom=zoom,
                    children=children,
                ))
                next_level.append(cluster_id)
            else:
                next_level.append(node_id)

                if num_points > 1:
                    for neighbor_id in neighbor_ids:
                        neighbor = self._nodes[neighbor_id]
                        if neighbor.zoom <= zoom:
                            continue
                        neighbor.zoom = zoom
                        next_level.append(neighbor_id)

        return next_level

    def _cluster_node(self, cluster_id: int, build_id: Optional[int]) -> _Node:
        if build_id is not None and build_id != self.build_id:
            raise StaleIndexError(
                f"Cluster {cluster_id} is from build {build_id}, current build is {self.build_id}"
            )
        if not 0 <= cluster_id < len(self._nodes) or not self._nodes[cluster_id].is_cluster:
            raise StaleIndexError(f"No cluster with id {cluster_id} in build {self.build_id}")
        return self._nodes[cluster_id]

    def _to_cluster_node(self, node_id: int) -> ClusterNode:
        node = self._nodes[node_id]
        if node.is_cluster:
            return ClusterNode(
                id=node_id,
                build_id=self.build_id,
                cluster=True,
                coordinates=(x_lng(node.x), y_lat(node.y)),
                point_count=node.num_points,
            )

        event = self.events[node.event_index]
        return ClusterNode(
            id=node_id,
            build_id=self.build_id,
            cluster=False,
            coordinates=event.coordinates,
            event_id=event.id,
        )

"""Tests for the k-d index and the cluster index."""

import random

import pytest

from servers.event_radar.errors import StaleIndexError
from servers.event_radar.spatial import KDIndex, SpatialIndexer
from servers.event_radar.spatial.indexer import lat_y, lng_x, x_lng, y_lat

WORLD = (-180, -90, 180, 90)


@pytest.fixture
def miami_events(event_factory):
    """Three events within a few km of each other, plus one without coordinates."""
    return [
        event_factory("mock:wynwood", coordinates=(-80.1994, 25.8010)),
        event_factory("mock:bayside", coordinates=(-80.1862, 25.7781)),
        event_factory("mock:brickell", coordinates=(-80.1937, 25.7663)),
        event_factory("mock:nowhere"),
    ]


class TestKDIndex:
    """Compare tree queries against brute force."""

    @pytest.fixture
    def points(self):
        rng = random.Random(42)
        return [(i, rng.random(), rng.random()) for i in range(500)]

    def test_range(self, points):
        index = KDIndex(points, node_size=4)
        box = (0.2, 0.3, 0.45, 0.6)

        expected = {i for i, x, y in points if box[0] <= x <= box[2] and box[1] <= y <= box[3]}
        assert set(index.range(*box)) == expected

    def test_within(self, points):
        index = KDIndex(points, node_size=4)
        qx, qy, r = 0.5, 0.5, 0.1

        expected = {i for i, x, y in points if (x - qx) ** 2 + (y - qy) ** 2 <= r * r}
        assert set(index.within(qx, qy, r)) == expected

    def test_empty(self):
        index = KDIndex([])
        assert len(index) == 0
        assert index.range(0, 0, 1, 1) == []
        assert index.within(0.5, 0.5, 1) == []

    def test_edges_included(self):
        index = KDIndex([(7, 0.5, 0.5)])
        assert index.range(0.5, 0.5, 0.5, 0.5) == [7]
        assert index.within(0.6, 0.5, 0.1) == [7]


class TestProjection:
    """Mercator projection helpers."""

    @pytest.mark.parametrize(("lng", "lat"), [(0, 0), (-80.19, 25.76), (139.69, 35.68), (-179.9, -60)])
    def test_round_trip(self, lng, lat):
        assert x_lng(lng_x(lng)) == pytest.approx(lng)
        assert y_lat(lat_y(lat)) == pytest.approx(lat)

    def test_poles_clamped(self):
        assert lat_y(90) == 0.0
        assert lat_y(-90) == 1.0


class TestLoading:
    """Tests for building the index."""

    def test_skips_events_without_coordinates(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)
        assert len(indexer.events) == 3
        assert indexer.event("mock:nowhere") is None
        assert indexer.event("mock:wynwood").id == "mock:wynwood"

    def test_each_load_is_a_new_build(self, miami_events):
        indexer = SpatialIndexer()
        assert indexer.build_id == 0
        indexer.load(miami_events)
        indexer.load(miami_events)
        assert indexer.build_id == 2

    def test_reload_is_deterministic(self, miami_events):
        indexer = SpatialIndexer()

        def snapshot(zoom):
            return sorted(
                (n.cluster, n.point_count, n.coordinates, n.event_id or "")
                for n in indexer.get_clusters(WORLD, zoom)
            )

        indexer.load(miami_events)
        first = [snapshot(z) for z in (0, 8, 12, 17)]
        indexer.load(miami_events)
        assert [snapshot(z) for z in (0, 8, 12, 17)] == first

    def test_empty_load(self):
        indexer = SpatialIndexer().load([])
        assert indexer.get_clusters(WORLD, 3) == []


class TestClusters:
    """Tests for get_clusters and cluster traversal."""

    def test_nearby_points_cluster_at_low_zoom(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)

        nodes = indexer.get_clusters(WORLD, 4)

        assert len(nodes) == 1
        assert nodes[0].cluster
        assert nodes[0].point_count == 3
        assert nodes[0].build_id == indexer.build_id
        lng, lat = nodes[0].coordinates
        assert -80.21 < lng < -80.18
        assert 25.76 < lat < 25.81

    def test_points_separate_past_max_zoom(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)

        nodes = indexer.get_clusters(WORLD, 20)

        assert len(nodes) == 3
        assert not any(n.cluster for n in nodes)
        by_id = {n.event_id: n for n in nodes}
        assert by_id["mock:bayside"].coordinates == (-80.1862, 25.7781)

    def test_distant_points_stay_apart(self, event_factory):
        events = [
            event_factory("mock:miami", coordinates=(-80.19, 25.76)),
            event_factory("mock:tokyo", coordinates=(139.69, 35.68)),
        ]
        nodes = SpatialIndexer().load(events).get_clusters(WORLD, 0)
        assert sorted(n.event_id for n in nodes) == ["mock:miami", "mock:tokyo"]

    def test_bbox_filters(self, event_factory):
        events = [
            event_factory("mock:miami", coordinates=(-80.19, 25.76)),
            event_factory("mock:tokyo", coordinates=(139.69, 35.68)),
        ]
        nodes = SpatialIndexer().load(events).get_clusters((-90, 20, -70, 30), 10)
        assert [n.event_id for n in nodes] == ["mock:miami"]

    def test_antimeridian_bbox_split(self, event_factory):
        events = [
            event_factory("mock:east", coordinates=(179.5, 0.0)),
            event_factory("mock:west", coordinates=(-179.5, 0.0)),
            event_factory("mock:greenwich", coordinates=(0.0, 0.0)),
        ]
        indexer = SpatialIndexer().load(events)

        nodes = indexer.get_clusters((170, -10, -170, 10), 10)

        assert sorted(n.event_id for n in nodes) == ["mock:east", "mock:west"]

    def test_children_and_leaves(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)
        cluster = indexer.get_clusters(WORLD, 4)[0]

        children = indexer.get_children(cluster.id)
        leaves = indexer.get_leaves(cluster.id)

        assert sum(c.point_count for c in children) == 3
        assert sorted(e.id for e in leaves) == ["mock:bayside", "mock:brickell", "mock:wynwood"]

    def test_expansion_zoom_splits_cluster(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)
        cluster = indexer.get_clusters(WORLD, 4)[0]

        zoom = indexer.get_expansion_zoom(cluster.id)

        assert zoom > 4
        assert len(indexer.get_clusters(WORLD, zoom)) > 1
        assert len(indexer.get_clusters(WORLD, zoom - 1)) == 1


class TestStaleIds:
    """Cluster ids are only valid for their own build."""

    def test_old_build_rejected(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)
        cluster = indexer.get_clusters(WORLD, 4)[0]
        old_build = cluster.build_id
        indexer.load(miami_events)

        with pytest.raises(StaleIndexError):
            indexer.get_expansion_zoom(cluster.id, build_id=old_build)
        with pytest.raises(StaleIndexError):
            indexer.get_children(cluster.id, build_id=old_build)

    def test_unknown_id_rejected(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)
        with pytest.raises(StaleIndexError):
            indexer.get_leaves(10_000)

    def test_leaf_id_is_not_a_cluster(self, miami_events):
        indexer = SpatialIndexer().load(miami_events)
        leaf = indexer.get_clusters(WORLD, 20)[0]
        with pytest.raises(StaleIndexError):
            indexer.get_expansion_zoom(leaf.id)

"""
Contract tests for the Queue Builder.

- Fully connected catalogs yield 2N-1 alternating items
- A route crossing a missing edge yields [] (fail closed, never partial)
- Variants follow the traversed edges' from/to choices
"""

import numpy as np
import pytest

from smartbridge.broadcast_core.queue_builder import build_queue, draw_route, expand_route
from smartbridge.broadcast_core.queue_item import BridgeItem, SongItem, describe_queue, validate_queue
from smartbridge.catalog.models import Catalog, MediaRef, Song
from smartbridge.errors import RouteUnbuildable
from smartbridge.tests.contracts.test_doubles import (
    FixedRng,
    bridge_key,
    create_catalog,
    create_song,
    song_key,
)


class TestFullyConnectedCatalogs:
    """Queue shape over fully connected catalogs."""

    @pytest.mark.parametrize("n", [1, 2, 3, 5, 8])
    def test_queue_length_is_2n_minus_1(self, n):
        catalog = create_catalog(tuple(range(1, n + 1)))
        queue = build_queue(catalog, np.random.default_rng(n))

        assert len(queue) == 2 * n - 1, "Fully connected catalog must yield 2N-1 items"
        assert validate_queue(queue), "Queue must alternate song, bridge, ..., song"

    def test_every_song_appears_exactly_once(self):
        catalog = create_catalog((1, 2, 3, 4, 5))
        queue = build_queue(catalog, np.random.default_rng(42))

        slots = [item.slot for item in queue if item.type == "song"]
        assert sorted(slots) == [1, 2, 3, 4, 5]

    def test_bridges_connect_their_neighbours(self):
        catalog = create_catalog((1, 2, 3, 4))
        queue = build_queue(catalog, np.random.default_rng(7))

        for position in range(1, len(queue), 2):
            bridge = queue[position]
            assert bridge.from_slot == queue[position - 1].slot
            assert bridge.to_slot == queue[position + 1].slot
            assert bridge.source_key == bridge_key(bridge.from_slot, bridge.to_slot)

    def test_single_song_catalog_yields_one_item(self):
        catalog = create_catalog((4,), edges=[])
        queue = build_queue(catalog, np.random.default_rng(0))

        assert queue == [SongItem(slot=4, title="Song 4", source_key=song_key(4, "a"), choice="a")]

    def test_seeded_rng_is_reproducible(self):
        catalog = create_catalog((1, 2, 3, 4, 5, 6))
        first = build_queue(catalog, np.random.default_rng(123))
        second = build_queue(catalog, np.random.default_rng(123))

        assert first == second


class TestFailClosed:
    """Missing edges on the drawn route abort the whole attempt."""

    def test_route_1_2_3_builds_expected_queue(self):
        catalog = create_catalog(
            (1, 2, 3),
            edges=[(1, 2), (2, 3)],
            choices={(1, 2): ("a", "b"), (2, 3): ("b", "a")},
        )
        queue = build_queue(catalog, FixedRng(order=[0, 1, 2]))

        assert queue == [
            SongItem(slot=1, title="Song 1", source_key=song_key(1, "a"), choice="a"),
            BridgeItem(from_slot=1, to_slot=2, source_key=bridge_key(1, 2), to_choice="b"),
            SongItem(slot=2, title="Song 2", source_key=song_key(2, "b"), choice="b"),
            BridgeItem(from_slot=2, to_slot=3, source_key=bridge_key(2, 3), to_choice="a"),
            SongItem(slot=3, title="Song 3", source_key=song_key(3, "a"), choice="a"),
        ]

    def test_route_1_3_2_with_missing_edge_yields_empty(self):
        catalog = create_catalog((1, 2, 3), edges=[(1, 2), (2, 3)])
        queue = build_queue(catalog, FixedRng(order=[0, 2, 1]))

        assert queue == [], "Route crossing a missing edge must yield an empty queue, never partial"

    def test_expand_route_raises_route_unbuildable(self):
        catalog = create_catalog((1, 2, 3), edges=[(1, 2)])

        with pytest.raises(RouteUnbuildable) as exc_info:
            expand_route([1, 2, 3], catalog)

        assert exc_info.value.from_slot == 2
        assert exc_info.value.to_slot == 3
        assert "2-3" in str(exc_info.value)

    def test_reverse_edge_does_not_count(self):
        catalog = create_catalog((1, 2), edges=[(2, 1)])

        assert build_queue(catalog, FixedRng(order=[0, 1])) == []
        assert len(build_queue(catalog, FixedRng(order=[1, 0]))) == 3

    def test_catalog_without_playable_songs_yields_empty(self):
        catalog = Catalog(songs=(Song(slot=1, title="Silent", variants={"a": MediaRef("")}),), connections={})

        assert build_queue(catalog, np.random.default_rng(0)) == []


class TestVariantSelection:
    """Variant choice follows the traversed edges."""

    def test_first_song_uses_first_edge_from_choice(self):
        catalog = create_catalog((1, 2), edges=[(1, 2)], choices={(1, 2): ("b", "a")})
        queue = build_queue(catalog, FixedRng(order=[0, 1]))

        assert queue[0].choice == "b"
        assert queue[0].source_key == song_key(1, "b")
        assert queue[2].choice == "a"

    def test_later_songs_use_incoming_to_choice(self):
        catalog = create_catalog(
            (1, 2, 3),
            edges=[(1, 2), (2, 3)],
            # Outgoing from_choice of 2-3 is ignored; 2 arrives as "b"
            choices={(1, 2): ("a", "b"), (2, 3): ("a", "b")},
        )
        queue = build_queue(catalog, FixedRng(order=[0, 1, 2]))

        assert [item.choice for item in queue if item.type == "song"] == ["a", "b", "b"]

    def test_missing_variant_falls_back_to_other(self):
        catalog = Catalog(
            songs=(create_song(1), create_song(2, choices=("a",))),
            connections=create_catalog((1, 2), edges=[(1, 2)], choices={(1, 2): ("a", "b")}).connections,
        )
        queue = build_queue(catalog, FixedRng(order=[0, 1]))

        assert queue[2].choice == "a", "Song without variant b must fall back to a"
        assert queue[2].source_key == song_key(2, "a")


class TestRouteDraw:
    def test_draw_route_is_a_permutation(self):
        route = draw_route([3, 5, 9, 11], np.random.default_rng(5))

        assert sorted(route) == [3, 5, 9, 11]
        assert all(isinstance(slot, int) for slot in route)

    def test_all_orders_reachable(self):
        rng = np.random.default_rng(2024)
        seen = {tuple(draw_route([1, 2, 3], rng)) for _ in range(300)}

        assert len(seen) == 6, "Every permutation of three slots should appear"


class TestQueueItems:
    def test_validate_queue_rejects_two_songs_in_a_row(self):
        a = SongItem(slot=1, title="A", source_key="a")
        b = SongItem(slot=2, title="B", source_key="b")

        assert validate_queue([]) is True
        assert validate_queue([a]) is True
        assert validate_queue([a, b]) is False

    def test_item_keys_are_stable(self):
        assert SongItem(slot=3, title="x", source_key="k", choice="b").key == "song:3:b"
        assert BridgeItem(from_slot=1, to_slot=2, source_key="k").key == "bridge:1-2"

    def test_describe_queue(self):
        items = [
            SongItem(slot=1, title="A", source_key="a"),
            BridgeItem(from_slot=1, to_slot=2, source_key="b"),
            SongItem(slot=2, title="B", source_key="c", choice="b"),
        ]
        assert describe_queue(items) == ["song(1,a)", "bridge(1-2)", "song(2,b)"]

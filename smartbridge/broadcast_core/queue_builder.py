"""
Queue Builder for Smart Bridge.

Computes a random traversal route over the catalog's playable songs and
expands it into an alternating song/bridge queue, using only authored
edges. A route that crosses a missing edge fails closed: the whole
attempt yields an empty queue, never a partial one. Retrying with a new
route is the caller's decision.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from smartbridge.broadcast_core.queue_item import BridgeItem, QueueItem, SongItem, describe_queue
from smartbridge.catalog.models import Catalog
from smartbridge.errors import RouteUnbuildable

logger = logging.getLogger(__name__)

DEFAULT_CHOICE = "a"


def draw_route(slots: Sequence[int], rng: Optional[np.random.Generator] = None) -> List[int]:
    """
    Draw a uniformly random permutation of the given slots.

    Args:
        slots: Playable song slots (duplicates are not expected)
        rng: Optional numpy Generator (seed it for reproducible routes)

    Returns:
        New list with the slots in route order
    """
    rng = rng if rng is not None else np.random.default_rng()
    order = rng.permutation(len(slots))
    return [int(slots[i]) for i in order]


def _song_item(catalog: Catalog, slot: int, choice: str) -> SongItem:
    song = catalog.song(slot)
    chosen, ref = song.variant_for(choice)
    return SongItem(slot=slot, title=song.title, source_key=ref.source_key, choice=chosen)


def expand_route(route: Sequence[int], catalog: Catalog) -> List[QueueItem]:
    """
    Expand a route into queue items.

    The first song plays the first edge's from-variant; every later song
    plays the variant named by its incoming edge's to_choice.

    Raises:
        RouteUnbuildable: On the first consecutive pair with no authored edge
    """
    if not route:
        return []

    items: List[QueueItem] = []
    arrival_choice: Optional[str] = None

    for position in range(len(route) - 1):
        from_slot, to_slot = route[position], route[position + 1]
        conn = catalog.connection(from_slot, to_slot)
        if conn is None or not conn.bridge.is_resolvable:
            raise RouteUnbuildable(from_slot, to_slot)

        choice = arrival_choice if arrival_choice is not None else conn.from_choice
        items.append(_song_item(catalog, from_slot, choice))
        items.append(BridgeItem(
            from_slot=from_slot,
            to_slot=to_slot,
            source_key=conn.bridge.source_key,
            to_choice=conn.to_choice,
        ))
        arrival_choice = conn.to_choice

    last_choice = arrival_choice if arrival_choice is not None else DEFAULT_CHOICE
    items.append(_song_item(catalog, route[-1], last_choice))
    return items


def build_queue(catalog: Catalog, rng: Optional[np.random.Generator] = None) -> List[QueueItem]:
    """
    Build one adaptive playback queue.

    Args:
        catalog: Normalized catalog
        rng: Optional numpy Generator for the route draw

    Returns:
        Alternating song/bridge queue of length 2N-1, or [] when the
        catalog has no playable songs or the drawn route is unbuildable
    """
    slots = catalog.playable_slots
    if not slots:
        logger.warning(f"[QUEUE] Release '{catalog.release_id}' has no playable songs")
        return []

    route = draw_route(slots, rng)
    try:
        items = expand_route(route, catalog)
    except RouteUnbuildable as e:
        logger.info(f"[QUEUE] Route {route} unbuildable: {e}")
        return []

    logger.info(f"[QUEUE] Built queue for route {route}: {' '.join(describe_queue(items))}")
    return items

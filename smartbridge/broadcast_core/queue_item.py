"""
Queue Item Model for Smart Bridge.

Defines the song and bridge items that make up an adaptive playback queue.
"""

from dataclasses import dataclass
from typing import List, Literal, Sequence, Union


@dataclass(frozen=True)
class SongItem:
    """
    A song in the playback queue.

    Attributes:
        slot: Catalog slot of the song
        title: Display title
        source_key: Source key of the chosen variant
        choice: Variant ("a"/"b") that source_key belongs to
        type: Always "song"
    """
    slot: int
    title: str
    source_key: str
    choice: str = "a"
    type: Literal["song"] = "song"

    @property
    def key(self) -> str:
        """Stable identity used for per-item source caching."""
        return f"song:{self.slot}:{self.choice}"


@dataclass(frozen=True)
class BridgeItem:
    """
    An authored transition clip between two songs.

    Attributes:
        from_slot: Slot of the song the bridge leaves
        to_slot: Slot of the song the bridge arrives at
        source_key: Source key of the bridge clip
        to_choice: Variant of the arrival song
        type: Always "bridge"
    """
    from_slot: int
    to_slot: int
    source_key: str
    to_choice: str = "a"
    type: Literal["bridge"] = "bridge"

    @property
    def key(self) -> str:
        return f"bridge:{self.from_slot}-{self.to_slot}"


QueueItem = Union[SongItem, BridgeItem]


def validate_queue(items: Sequence[QueueItem]) -> bool:
    """
    Check the alternation invariant: song, bridge, song, ..., song.

    An empty queue is valid (it means "adaptive mode unavailable").
    """
    if not items:
        return True
    if len(items) % 2 == 0:
        return False
    for position, item in enumerate(items):
        expected = "song" if position % 2 == 0 else "bridge"
        if item.type != expected:
            return False
    return True


def describe_queue(items: Sequence[QueueItem]) -> List[str]:
    """Human-readable queue dump for logs."""
    lines = []
    for item in items:
        if item.type == "song":
            lines.append(f"song({item.slot},{item.choice})")
        else:
            lines.append(f"bridge({item.from_slot}-{item.to_slot})")
    return lines

"""
Core sequencing for Smart Bridge adaptive playback.

Queue construction, end-signal guarding, preview capping and the
playback state machine (smartbridge.broadcast_core.state_machine).
"""

from smartbridge.broadcast_core.end_guard import EndSignalGuard
from smartbridge.broadcast_core.preview_cap import PreviewCapEnforcer
from smartbridge.broadcast_core.queue_builder import build_queue, draw_route, expand_route
from smartbridge.broadcast_core.queue_item import BridgeItem, QueueItem, SongItem, validate_queue

__all__ = [
    "EndSignalGuard",
    "PreviewCapEnforcer",
    "build_queue",
    "draw_route",
    "expand_route",
    "BridgeItem",
    "QueueItem",
    "SongItem",
    "validate_queue",
]

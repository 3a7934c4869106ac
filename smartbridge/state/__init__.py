"""
State management for Smart Bridge: the now-playing display and the
owned-release collection.
"""

from smartbridge.state.collection_store import CollectionStore
from smartbridge.state.now_playing_state import NowPlayingScheduler, NowPlayingState

__all__ = ["CollectionStore", "NowPlayingScheduler", "NowPlayingState"]

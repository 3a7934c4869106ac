"""
Adaptive Playback Service for Smart Bridge.

The surface the rest of an application talks to: start adaptive playback
for a catalog (or a release id), observe playback snapshots, drive the
transport, and leave adaptive mode. Wires the queue builder, the playback
state machine and the now-playing scheduler around one shared device.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from smartbridge.app.config import SmartBridgeConfig
from smartbridge.broadcast_core.end_guard import EndSignalGuard
from smartbridge.broadcast_core.preview_cap import PreviewCapEnforcer
from smartbridge.broadcast_core.queue_builder import build_queue
from smartbridge.broadcast_core.state_machine import PlaybackSnapshot, PlaybackStateMachine
from smartbridge.catalog.loader import CatalogLoader
from smartbridge.catalog.models import Catalog
from smartbridge.clock.scheduler import Scheduler
from smartbridge.errors import CatalogInvalid, CatalogLoadError
from smartbridge.outputs.base_device import PlaybackDevice
from smartbridge.resolver.source_resolver import SourceResolver
from smartbridge.state.collection_store import CollectionStore
from smartbridge.state.now_playing_state import NowPlayingScheduler

logger = logging.getLogger(__name__)

UNAVAILABLE_REASON = "adaptive playback unavailable for this release"


@dataclass(frozen=True)
class StartResult:
    """Outcome of a start request. reason is set when ok is False."""
    ok: bool
    reason: Optional[str] = None


class AdaptivePlaybackService:
    """
    Adaptive playback facade.

    One instance owns one state machine and therefore one device. Starting
    a new catalog always tears down the previous session first.
    """

    def __init__(
        self,
        device: PlaybackDevice,
        resolver: SourceResolver,
        scheduler: Scheduler,
        config: Optional[SmartBridgeConfig] = None,
        rng: Optional[np.random.Generator] = None,
        collection: Optional[CollectionStore] = None,
        loader: Optional[CatalogLoader] = None,
    ):
        """
        Initialize the adaptive playback service.

        Args:
            device: The shared playback device
            resolver: Source key -> URL resolver
            scheduler: Timer/time source
            config: Policy values (defaults when omitted)
            rng: numpy Generator used for routes and bridge delays
            collection: Owned-release store; releases not in it play restricted
            loader: Catalog loader for start_adaptive_playback_for_release()
        """
        self.config = config or SmartBridgeConfig()
        self._rng = rng if rng is not None else np.random.default_rng()
        self._collection = collection
        self._loader = loader
        self._catalog: Optional[Catalog] = None

        self.now_playing = NowPlayingScheduler(
            scheduler,
            rng=self._rng,
            highlight_duration_sec=self.config.highlight_sec,
            bridge_delay_min_sec=self.config.bridge_delay_min_sec,
            bridge_delay_max_sec=self.config.bridge_delay_max_sec,
            bridge_label=self.config.bridge_label,
        )
        self.machine = PlaybackStateMachine(
            device,
            resolver,
            scheduler,
            now_playing=self.now_playing,
            end_guard=EndSignalGuard(self.config.end_cooldown_sec, self.config.min_end_progress_sec),
            preview_cap=PreviewCapEnforcer(self.config.preview_cap_sec),
        )

    @property
    def catalog(self) -> Optional[Catalog]:
        return self._catalog

    def is_owned(self, release_id: str) -> bool:
        if self._collection is None or not release_id:
            return False
        return self._collection.contains(release_id)

    def start_adaptive_playback(self, catalog: Catalog, restricted: Optional[bool] = None) -> StartResult:
        """
        Build a queue for the catalog and start playing it.

        Args:
            catalog: Normalized catalog
            restricted: Force preview mode on/off; by default a release
                is restricted unless it is in the collection

        Returns:
            StartResult(ok=False, reason=...) when no queue could be built
        """
        if restricted is None:
            restricted = self._collection is not None and not self.is_owned(catalog.release_id)

        queue = build_queue(catalog, self._rng)
        if not queue:
            logger.info(f"[PLAYBACK] Adaptive playback unavailable for '{catalog.release_id}'")
            self.machine.reset()
            self._catalog = None
            return StartResult(ok=False, reason=UNAVAILABLE_REASON)

        self._catalog = catalog
        self.machine.start(queue, restricted=restricted)
        return StartResult(ok=True)

    def start_adaptive_playback_for_release(self, release_id: str, restricted: Optional[bool] = None) -> StartResult:
        """Load the release's catalog, then start adaptive playback on it."""
        if self._loader is None:
            return StartResult(ok=False, reason="no catalog loader configured")
        try:
            catalog = self._loader.load_catalog(release_id)
        except (CatalogLoadError, CatalogInvalid) as e:
            logger.warning(f"[CATALOG] Cannot start '{release_id}': {e}")
            return StartResult(ok=False, reason=str(e))
        return self.start_adaptive_playback(catalog, restricted=restricted)

    def stop_adaptive_playback(self) -> None:
        self.machine.reset()
        self._catalog = None

    def switch_to_album_mode(self) -> None:
        """Leave adaptive mode: hard reset to Idle and release the device."""
        logger.info("[PLAYBACK] Switching to album mode")
        self.stop_adaptive_playback()

    def on_playback_state_change(self, listener: Callable[[PlaybackSnapshot], None]) -> Callable[[PlaybackSnapshot], None]:
        """
        Register a snapshot listener.

        Returns:
            The listener, for later remove_listener()
        """
        self.machine.add_listener(listener)
        return listener

    def remove_listener(self, listener: Callable[[PlaybackSnapshot], None]) -> None:
        self.machine.remove_listener(listener)

    def snapshot(self) -> PlaybackSnapshot:
        return self.machine.snapshot()

    def user_play(self) -> bool:
        return self.machine.user_play()

    def user_pause(self) -> bool:
        return self.machine.user_pause()

    def user_seek(self, position: float) -> bool:
        return self.machine.user_seek(position)

    def mark_owned(self, release_id: str) -> bool:
        """
        Record a purchase. If the release is currently playing restricted,
        the preview cap is lifted for the rest of the session.

        Returns:
            True if the release was not owned before
        """
        if self._collection is None:
            raise ValueError("no collection store configured")
        added = self._collection.upsert(release_id)
        if self._catalog is not None and self._catalog.release_id == str(release_id).strip():
            self.machine.set_restricted(False)
            logger.info(f"[PREVIEW] Preview cap lifted for '{release_id}'")
        return added

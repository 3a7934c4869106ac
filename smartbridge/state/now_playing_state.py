"""
Now Playing / Highlight Scheduler

Derives the user-facing "now playing" label and the active-song highlight
from playback phase entries.

- Song entry: label and active marker update immediately; the marker
  clears itself after the highlight duration.
- Bridge entry: the active marker clears immediately; the label is left
  alone for a random delay, then shows the neutral bridge label, and a
  second independently drawn delay previews the upcoming song's title.
- Every phase entry and every reset cancels pending label timers.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from smartbridge.broadcast_core.queue_item import BridgeItem, SongItem
from smartbridge.clock.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

HIGHLIGHT_DURATION_SEC = 100.0
BRIDGE_DELAY_MIN_SEC = 5.0
BRIDGE_DELAY_MAX_SEC = 20.0
BRIDGE_LABEL = "…"


@dataclass(frozen=True)
class NowPlayingState:
    """
    Immutable snapshot of the now-playing display.

    label is "" when nothing has been revealed yet.
    """
    label: str = ""
    active_song_slot: Optional[int] = None
    highlight_visible: bool = False


def song_label(item: SongItem) -> str:
    return f"{item.slot}. {item.title}"


class NowPlayingScheduler:
    """
    Manages NowPlayingState lifecycle.

    Fed by the playback state machine (on_song_entered, on_bridge_entered,
    on_session_reset); timers run on the injected Scheduler. Listeners are
    notified outside the internal lock so they may query the state machine
    without lock-order problems.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        rng: Optional[np.random.Generator] = None,
        highlight_duration_sec: float = HIGHLIGHT_DURATION_SEC,
        bridge_delay_min_sec: float = BRIDGE_DELAY_MIN_SEC,
        bridge_delay_max_sec: float = BRIDGE_DELAY_MAX_SEC,
        bridge_label: str = BRIDGE_LABEL,
    ):
        self._scheduler = scheduler
        self._rng = rng if rng is not None else np.random.default_rng()
        self.highlight_duration_sec = highlight_duration_sec
        self.bridge_delay_min_sec = bridge_delay_min_sec
        self.bridge_delay_max_sec = bridge_delay_max_sec
        self.bridge_label = bridge_label

        self._state = NowPlayingState()
        self._lock = threading.RLock()
        self._timers: List[TimerHandle] = []
        # Bumped on every phase entry; timers from an older entry are ignored
        self._epoch = 0
        self._preview_shown = False
        self._listeners: List[Callable[[NowPlayingState], None]] = []

    def get_state(self) -> NowPlayingState:
        with self._lock:
            return self._state

    def draw_bridge_delay(self) -> float:
        return float(self._rng.uniform(self.bridge_delay_min_sec, self.bridge_delay_max_sec))

    def on_song_entered(self, item: SongItem) -> None:
        with self._lock:
            epoch = self._begin_entry()
            self._state = NowPlayingState(
                label=song_label(item),
                active_song_slot=item.slot,
                highlight_visible=True,
            )
            self._schedule(self.highlight_duration_sec, epoch, self._expire_highlight)
            state = self._state
        logger.debug(f"[NOW_PLAYING] Song entered: {state.label}")
        self._notify_listeners(state)

    def on_bridge_entered(self, item: BridgeItem, upcoming: Optional[SongItem] = None) -> None:
        with self._lock:
            epoch = self._begin_entry()
            self._state = NowPlayingState(
                label=self._state.label,
                active_song_slot=None,
                highlight_visible=False,
            )
            reveal_delay = self.draw_bridge_delay()
            self._schedule(reveal_delay, epoch, self._reveal_bridge_label)
            preview_delay = None
            if upcoming is not None:
                preview_delay = self.draw_bridge_delay()
                self._schedule(preview_delay, epoch, lambda: self._preview_upcoming(upcoming))
            state = self._state
        preview_text = f"{preview_delay:.1f}s" if preview_delay is not None else "never"
        logger.debug(
            f"[NOW_PLAYING] Bridge {item.from_slot}-{item.to_slot} entered "
            f"(reveal in {reveal_delay:.1f}s, preview in {preview_text})"
        )
        self._notify_listeners(state)

    def on_session_reset(self) -> None:
        """Clear state and cancel timers (session stopped, catalog switched, queue rebuilt)."""
        with self._lock:
            self._begin_entry()
            changed = self._state != NowPlayingState()
            self._state = NowPlayingState()
            state = self._state
        if changed:
            logger.debug("[NOW_PLAYING] State cleared")
            self._notify_listeners(state)

    def pending_timer_count(self) -> int:
        with self._lock:
            return sum(1 for handle in self._timers if not handle.cancelled)

    def _begin_entry(self) -> int:
        for handle in self._timers:
            handle.cancel()
        self._timers = []
        self._epoch += 1
        self._preview_shown = False
        return self._epoch

    def _schedule(self, delay: float, epoch: int, action: Callable[[], None]) -> None:
        def fire() -> None:
            with self._lock:
                if epoch != self._epoch:
                    return
                changed = action()
                state = self._state
            if changed:
                self._notify_listeners(state)

        self._timers.append(self._scheduler.call_later(delay, fire))

    def _expire_highlight(self) -> bool:
        if not self._state.highlight_visible:
            return False
        self._state = NowPlayingState(
            label=self._state.label,
            active_song_slot=self._state.active_song_slot,
            highlight_visible=False,
        )
        logger.debug("[NOW_PLAYING] Highlight expired")
        return True

    def _reveal_bridge_label(self) -> bool:
        if self._preview_shown:
            return False
        self._state = NowPlayingState(label=self.bridge_label)
        return True

    def _preview_upcoming(self, upcoming: SongItem) -> bool:
        self._preview_shown = True
        self._state = NowPlayingState(label=song_label(upcoming))
        logger.debug(f"[NOW_PLAYING] Previewing upcoming song: {self._state.label}")
        return True

    def add_listener(self, callback: Callable[[NowPlayingState], None]) -> None:
        """
        Add a listener callback for state changes.

        Callback will be called with (state: NowPlayingState) when state changes.
        """
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[NowPlayingState], None]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify_listeners(self, state: NowPlayingState) -> None:
        with self._lock:
            listeners = self._listeners.copy()

        for callback in listeners:
            try:
                callback(state)
            except Exception as e:
                # Display failures must not affect playback
                logger.debug(f"[NOW_PLAYING] Listener callback error: {e}")

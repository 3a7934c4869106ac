"""
Playback State Machine for Smart Bridge.

Owns the single shared playback device and sequences an adaptive queue
(song, bridge, song, ...) through it.

States: Idle, Loading, PlayingSong, PlayingBridge, Paused, Finished.

Every entry point (device events, resolver completions, timer callbacks,
user actions) takes the same re-entrant lock, so a transition always
completes (index, phase and pending transition consistent) before any
asynchronous work it started can observe the session.

Race safety:
- Each source swap gets a new token. Resolver completions, autoplay
  attempts and play-future settlements carrying an older token are
  ignored, so a superseded item can never restart playback.
- End signals go through EndSignalGuard (one per source, cooldown,
  progress threshold).
- Intent ("should be playing") is tracked separately from the device
  state; a blocked autoplay leaves intent set and surfaces
  autoplay_blocked until the user presses play again.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from smartbridge.broadcast_core.end_guard import EndSignalGuard
from smartbridge.broadcast_core.preview_cap import PreviewCapEnforcer
from smartbridge.broadcast_core.queue_item import BridgeItem, QueueItem, SongItem
from smartbridge.clock.scheduler import Scheduler
from smartbridge.outputs.base_device import PlaybackDevice
from smartbridge.resolver.source_resolver import ItemSourceCache, SourceResolver
from smartbridge.state.now_playing_state import NowPlayingScheduler, NowPlayingState

logger = logging.getLogger(__name__)

STATE_IDLE = "Idle"
STATE_LOADING = "Loading"
STATE_PLAYING_SONG = "PlayingSong"
STATE_PLAYING_BRIDGE = "PlayingBridge"
STATE_PAUSED = "Paused"
STATE_FINISHED = "Finished"

PHASE_SONG = "song"
PHASE_BRIDGE = "bridge"


@dataclass(frozen=True)
class PendingTransition:
    """Where to go when the current bridge ends."""
    next_index: int
    arrival_choice: str = "a"


@dataclass(frozen=True)
class PlaybackSnapshot:
    """
    Observable playback state, emitted on every change.

    Attributes:
        state: One of the STATE_* constants
        phase: "song" or "bridge"
        index: Position of current_queue_item in the queue
        current_queue_item: Item held by the device (None when idle)
        is_playing: Whether the device is actually playing
        intent_playing: Whether playback is wanted
        autoplay_blocked: Device refused to start; waiting for user_play()
        now_playing_label: Display label
        active_song_slot: Highlighted song slot, if any
        highlight_visible: Whether the highlight is shown
    """
    state: str
    phase: str
    index: int
    current_queue_item: Optional[QueueItem]
    is_playing: bool
    intent_playing: bool
    autoplay_blocked: bool
    now_playing_label: str = ""
    active_song_slot: Optional[int] = None
    highlight_visible: bool = False


class PhaseCallback(Protocol):
    """
    Protocol for receivers of phase entries.

    NowPlayingScheduler implements this interface.
    """

    def on_song_entered(self, item: SongItem) -> None:
        ...

    def on_bridge_entered(self, item: BridgeItem, upcoming: Optional[SongItem] = None) -> None:
        ...

    def on_session_reset(self) -> None:
        ...


class PlaybackStateMachine:
    """
    Event-driven sequencer for one adaptive playback session.

    Receives device events (DeviceEvents protocol), user actions and
    asynchronous completions; commands the device; reports phase entries
    to the now-playing scheduler and snapshots to listeners.
    """

    def __init__(
        self,
        device: PlaybackDevice,
        resolver: SourceResolver,
        scheduler: Scheduler,
        now_playing: Optional[NowPlayingScheduler] = None,
        end_guard: Optional[EndSignalGuard] = None,
        preview_cap: Optional[PreviewCapEnforcer] = None,
    ):
        """
        Initialize the playback state machine.

        Args:
            device: The one shared playback device (this machine becomes its event handler)
            resolver: Source resolver (wrapped in a per-item cache)
            scheduler: Timer/time source
            now_playing: Optional now-playing scheduler fed with phase entries
            end_guard: Optional end-signal guard (defaults to 350ms cooldown, 0.25s progress)
            preview_cap: Optional preview cap enforcer (disabled unless restricted)
        """
        self._device = device
        self._scheduler = scheduler
        self._cache = ItemSourceCache(resolver)
        self._now_playing = now_playing
        self._end_guard = end_guard or EndSignalGuard()
        self._preview_cap = preview_cap or PreviewCapEnforcer()
        self._preview_cap.set_callback(self._on_preview_cap_reached)

        self._lock = threading.RLock()
        self._listeners: List[Callable[[PlaybackSnapshot], None]] = []
        self._last_snapshot: Optional[PlaybackSnapshot] = None

        # Session
        self._queue: List[QueueItem] = []
        self._index = 0
        self._phase = PHASE_SONG
        self._pending: Optional[PendingTransition] = None
        self._state = STATE_IDLE

        # Intent vs. device reality
        self._want_playing = False
        self._is_playing = False
        self._autoplay_blocked = False

        # Monotonic swap token; bumped on every item entry and every reset
        self._token = 0
        self._source_token: Optional[int] = None  # token whose source the device holds
        self._play_requested_token: Optional[int] = None

        self._device.set_event_handler(self)
        if self._now_playing is not None:
            self._now_playing.add_listener(self._on_now_playing_changed)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    @property
    def phase(self) -> str:
        with self._lock:
            return self._phase

    @property
    def index(self) -> int:
        with self._lock:
            return self._index

    @property
    def pending_transition(self) -> Optional[PendingTransition]:
        with self._lock:
            return self._pending

    @property
    def queue(self) -> List[QueueItem]:
        with self._lock:
            return list(self._queue)

    @property
    def token(self) -> int:
        with self._lock:
            return self._token

    def snapshot(self) -> PlaybackSnapshot:
        with self._lock:
            display = self._now_playing.get_state() if self._now_playing is not None else NowPlayingState()
            current = self._queue[self._index] if self._queue and self._index < len(self._queue) else None
            return PlaybackSnapshot(
                state=self._state,
                phase=self._phase,
                index=self._index,
                current_queue_item=current,
                is_playing=self._is_playing,
                intent_playing=self._want_playing,
                autoplay_blocked=self._autoplay_blocked,
                now_playing_label=display.label,
                active_song_slot=display.active_song_slot,
                highlight_visible=display.highlight_visible,
            )

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def start(self, queue: Sequence[QueueItem], restricted: bool = False) -> bool:
        """
        Start a new session on the given queue.

        Any previous session is torn down first; all of its in-flight
        operations become stale.

        Returns:
            False if the queue is empty (the machine stays Idle)
        """
        with self._lock:
            self._reset_session()
            if not queue:
                logger.info("[PLAYBACK] Empty queue, staying idle")
                self._emit()
                return False

            self._queue = list(queue)
            self._want_playing = True
            self._preview_cap.enabled = restricted
            logger.info(
                f"[PLAYBACK] Session started: {len(self._queue)} item(s)"
                f"{' (restricted preview)' if restricted else ''}"
            )
            self._enter_item(0)
            return True

    def set_restricted(self, restricted: bool) -> None:
        """Turn the preview cap on or off for the running session (e.g. after a purchase)."""
        with self._lock:
            self._preview_cap.enabled = restricted

    def reset(self) -> None:
        """Hard-reset to Idle: stop the device, drop the queue, invalidate everything in flight."""
        with self._lock:
            was_active = self._state != STATE_IDLE
            self._reset_session()
            if was_active:
                logger.info("[PLAYBACK] Session reset to Idle")
            self._emit()

    def _reset_session(self) -> None:
        self._token += 1
        self._queue = []
        self._index = 0
        self._phase = PHASE_SONG
        self._pending = None
        self._state = STATE_IDLE
        self._want_playing = False
        self._is_playing = False
        self._autoplay_blocked = False
        self._source_token = None
        self._play_requested_token = None
        self._cache.clear()
        self._end_guard.reset()
        self._preview_cap.arm()
        self._preview_cap.enabled = False
        try:
            self._device.stop()
        except Exception as e:
            logger.warning(f"[PLAYBACK] Device stop failed during reset: {e}")
        if self._now_playing is not None:
            self._now_playing.on_session_reset()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def user_play(self) -> bool:
        """
        Record intent to play and drive the device.

        Also the retry path after a blocked autoplay.

        Returns:
            False when there is no active session
        """
        with self._lock:
            if self._state in (STATE_IDLE, STATE_FINISHED):
                return False
            self._want_playing = True
            self._autoplay_blocked = False
            token = self._token
            if self._source_token == token and not self._is_playing and self._play_requested_token != token:
                self._request_play(token)
            self._emit()
            return True

    def user_pause(self) -> bool:
        with self._lock:
            if self._state in (STATE_IDLE, STATE_FINISHED):
                return False
            self._want_playing = False
            self._autoplay_blocked = False
            self._device.pause()
            self._is_playing = False
            # Still Loading only while no source is held for this swap
            if self._state != STATE_LOADING or self._source_token == self._token:
                self._state = STATE_PAUSED
            # A play request still in flight must be able to go again later
            self._play_requested_token = None
            self._emit()
            return True

    def user_seek(self, position: float) -> bool:
        with self._lock:
            if self._source_token is None or self._source_token != self._token:
                return False
            self._device.seek(max(0.0, float(position)))
            return True

    # ------------------------------------------------------------------
    # Device events (DeviceEvents protocol)
    # ------------------------------------------------------------------

    def on_ended(self) -> None:
        with self._lock:
            if self._source_token != self._token:
                logger.debug("[PLAYBACK] Ended event for a superseded source ignored")
                return
            self._end_guard.note_progress(self._device.get_current_time())
            self.item_ended()

    def on_time_update(self, position: float) -> None:
        with self._lock:
            if self._source_token != self._token:
                return
            self._end_guard.note_progress(position)
            self._preview_cap.on_time_update(position, self._is_playing)

    def on_metadata_ready(self, duration: float) -> None:
        with self._lock:
            if self._source_token != self._token:
                return
            logger.debug(f"[PLAYBACK] Metadata ready ({duration:.1f}s)")
            self._attempt_autoplay(self._token)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def item_ended(self) -> bool:
        """
        Handle the end of the current item (natural or synthesized).

        Returns:
            True if the signal was accepted and a transition happened
        """
        with self._lock:
            if self._state in (STATE_IDLE, STATE_FINISHED):
                return False
            if not self._end_guard.accept(self._scheduler.now()):
                return False

            item = self._queue[self._index]
            logger.info(f"[PLAYBACK] Item {self._index} ({item.type}) ended")
            self._is_playing = False
            if self._phase == PHASE_SONG:
                self._advance_from_song()
            else:
                self._advance_from_bridge()
            return True

    def _advance_from_song(self) -> None:
        next_index = self._index + 1
        if next_index >= len(self._queue):
            self._finish()
            return

        upcoming = self._queue[next_index]
        if upcoming.type == PHASE_BRIDGE:
            song_index = next_index + 1
            self._pending = (
                PendingTransition(next_index=song_index, arrival_choice=upcoming.to_choice)
                if song_index < len(self._queue) else None
            )
        else:
            self._pending = None
        self._enter_item(next_index)

    def _advance_from_bridge(self) -> None:
        pending = self._pending
        self._pending = None
        if pending is None:
            logger.warning("[PLAYBACK] Bridge ended with no pending transition")
            self._finish()
            return
        self._enter_item(pending.next_index)

    def _enter_item(self, index: int) -> None:
        item = self._queue[index]
        self._token += 1
        token = self._token

        self._index = index
        self._phase = item.type
        self._state = STATE_LOADING
        self._is_playing = False
        self._autoplay_blocked = False
        self._source_token = None
        self._play_requested_token = None
        self._end_guard.arm()
        self._preview_cap.arm()

        if item.type == PHASE_BRIDGE:
            logger.info(f"[PLAYBACK] Entering bridge {item.from_slot}-{item.to_slot} (index {index})")
        else:
            logger.info(f"[PLAYBACK] Entering song {item.slot} '{item.title}' variant {item.choice} (index {index})")

        if self._now_playing is not None:
            if item.type == PHASE_BRIDGE:
                upcoming = self._queue[self._pending.next_index] if self._pending is not None else None
                self._now_playing.on_bridge_entered(item, upcoming)
            else:
                self._now_playing.on_song_entered(item)
        self._emit()

        future = self._cache.resolve_item(item.key, item.source_key)
        future.add_done_callback(lambda f: self._on_resolved(token, f))

    def _on_resolved(self, token: int, future: Future) -> None:
        with self._lock:
            if token != self._token:
                logger.debug(f"[PLAYBACK] Stale resolution (token {token}, current {self._token}) ignored")
                return
            if future.cancelled():
                self._handle_item_failure("resolution cancelled")
                return
            error = future.exception()
            if error is not None:
                self._handle_item_failure(f"resolution failed: {error}")
                return

            url = future.result()
            self._device.set_source(url)
            self._source_token = token
            logger.debug(f"[PLAYBACK] Source loaded for token {token}")

            if self._want_playing:
                self._scheduler.call_later(0.0, lambda: self._attempt_autoplay(token))
            else:
                self._state = STATE_PAUSED
            self._emit()

    def _attempt_autoplay(self, token: int) -> None:
        with self._lock:
            if token != self._token or self._source_token != token:
                logger.debug(f"[PLAYBACK] Autoplay attempt for superseded token {token} ignored")
                return
            if not self._want_playing or self._is_playing or self._play_requested_token == token:
                return
            if self._autoplay_blocked:
                # Only user_play() may retry after the device refused
                return
            self._request_play(token)

    def _request_play(self, token: int) -> None:
        self._play_requested_token = token
        try:
            future = self._device.play()
        except Exception as e:
            future = Future()
            future.set_exception(e)
        future.add_done_callback(lambda f: self._on_play_settled(token, f))

    def _on_play_settled(self, token: int, future: Future) -> None:
        with self._lock:
            if token != self._token:
                logger.debug(f"[PLAYBACK] Play settled for superseded token {token}, ignored")
                return

            error = "cancelled" if future.cancelled() else future.exception()
            if error is not None:
                self._play_requested_token = None
                self._is_playing = False
                if self._phase == PHASE_BRIDGE:
                    self._handle_item_failure(f"bridge playback failed: {error}")
                    return
                # Autoplay blocked: keep intent, wait for an explicit user_play()
                logger.info(f"[PLAYBACK] Autoplay blocked, waiting for user: {error}")
                self._autoplay_blocked = self._want_playing
                self._state = STATE_PAUSED
                self._emit()
                return

            if not self._want_playing:
                # User paused while the play request was in flight
                self._device.pause()
                self._is_playing = False
                self._state = STATE_PAUSED
                self._emit()
                return

            self._is_playing = True
            self._autoplay_blocked = False
            self._state = STATE_PLAYING_BRIDGE if self._phase == PHASE_BRIDGE else STATE_PLAYING_SONG
            self._emit()

    def _handle_item_failure(self, reason: str) -> None:
        """Fall back from a failed item without leaving the session inconsistent."""
        item = self._queue[self._index]
        self._device.pause()
        self._is_playing = False

        if self._phase == PHASE_BRIDGE:
            logger.warning(f"[PLAYBACK] Bridge {item.from_slot}-{item.to_slot} skipped ({reason})")
            pending = self._pending
            self._pending = None
            if pending is None:
                self._finish()
            else:
                self._enter_item(pending.next_index)
            return

        # A song that cannot load takes its outgoing bridge with it
        logger.warning(f"[PLAYBACK] Song {item.slot} skipped ({reason})")
        self._pending = None
        next_song = self._index + 2
        if next_song < len(self._queue):
            self._enter_item(next_song)
        else:
            self._finish()

    def _on_preview_cap_reached(self, position: float) -> None:
        # Runs under the lock (called from on_time_update)
        self._device.pause()
        self._device.seek(0.0)
        self._is_playing = False
        if not self.item_ended():
            logger.debug("[PLAYBACK] Preview cap end rejected, holding item paused")
            # Rewound to 0: the cap applies again if the user resumes
            self._preview_cap.arm()
            self._want_playing = False
            self._play_requested_token = None
            self._state = STATE_PAUSED
            self._emit()

    def _finish(self) -> None:
        self._token += 1
        self._device.pause()
        self._pending = None
        self._is_playing = False
        self._want_playing = False
        self._autoplay_blocked = False
        self._source_token = None
        self._play_requested_token = None
        self._state = STATE_FINISHED
        logger.info("[PLAYBACK] Queue finished")
        self._emit()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, callback: Callable[[PlaybackSnapshot], None]) -> None:
        """
        Add a listener callback for snapshot changes.

        Callback will be called with (snapshot: PlaybackSnapshot).
        """
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[PlaybackSnapshot], None]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _on_now_playing_changed(self, _state: NowPlayingState) -> None:
        self._emit()

    def _emit(self) -> None:
        with self._lock:
            snapshot = self.snapshot()
            if snapshot == self._last_snapshot:
                return
            self._last_snapshot = snapshot
            listeners = self._listeners.copy()

            for callback in listeners:
                try:
                    callback(snapshot)
                except Exception as e:
                    # Listener failures must not affect playback
                    logger.debug(f"[PLAYBACK] Listener callback error: {e}")

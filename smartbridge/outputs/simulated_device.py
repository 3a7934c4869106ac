"""
Simulated Playback Device for Smart Bridge.

Headless stand-in for a real audio element. A background ticker thread
advances the position of the loaded source while playing, emits time
updates every tick and emits "ended" when the simulated duration is
reached. Used by the command line runner to exercise the engine without
audio hardware.
"""

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, Optional

from smartbridge.errors import AutoplayBlocked

from .base_device import PlaybackDevice

logger = logging.getLogger(__name__)


class SimulatedDevice(PlaybackDevice):
    """
    Ticker-driven device.

    Events are emitted from the ticker thread with the device lock
    released, so handlers are free to call back into the device.
    """

    def __init__(
        self,
        default_duration: float = 180.0,
        tick_interval: float = 0.25,
        speed: float = 1.0,
        duration_for: Optional[Callable[[str], Optional[float]]] = None,
        block_autoplay: bool = False,
    ):
        """
        Initialize simulated device.

        Args:
            default_duration: Duration (seconds) of every source unless duration_for says otherwise
            tick_interval: Wall-clock seconds between ticks
            speed: Simulated seconds per wall-clock second
            duration_for: Optional per-URL duration lookup
            block_autoplay: Refuse play() with AutoplayBlocked until allow_autoplay()
        """
        super().__init__()
        self.default_duration = default_duration
        self.tick_interval = tick_interval
        self.speed = speed
        self._duration_for = duration_for
        self._autoplay_allowed = not block_autoplay

        self._lock = threading.RLock()
        self._source = ""
        self._duration = 0.0
        self._position = 0.0
        self._playing = False
        self._metadata_pending = False

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the ticker thread."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="SimulatedDevice", daemon=True)
        self._thread.start()
        logger.debug("[DEVICE] Simulated device ticker started")

    def close(self) -> None:
        """Stop the ticker thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

    def allow_autoplay(self) -> None:
        """Simulate the user gesture that lets play() succeed from now on."""
        with self._lock:
            self._autoplay_allowed = True

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._playing

    @property
    def source(self) -> str:
        with self._lock:
            return self._source

    def set_source(self, url: str) -> None:
        with self._lock:
            self._source = url
            self._position = 0.0
            self._playing = False
            duration = self._duration_for(url) if self._duration_for else None
            self._duration = duration if duration else self.default_duration
            self._metadata_pending = True
        logger.debug(f"[DEVICE] Source set ({self._duration:.1f}s): {url}")

    def play(self) -> Future:
        future: Future = Future()
        with self._lock:
            if not self._source:
                future.set_exception(RuntimeError("no source loaded"))
                return future
            if not self._autoplay_allowed:
                future.set_exception(AutoplayBlocked("playback requires a user gesture"))
                return future
            self._playing = True
        future.set_result(None)
        return future

    def pause(self) -> None:
        with self._lock:
            self._playing = False

    def seek(self, position: float) -> None:
        with self._lock:
            self._position = min(max(0.0, position), self._duration)

    def get_current_time(self) -> float:
        with self._lock:
            return self._position

    def stop(self) -> None:
        with self._lock:
            self._playing = False
            self._source = ""
            self._position = 0.0
            self._metadata_pending = False

    def _run(self) -> None:
        last = time.monotonic()
        while not self._stop_event.wait(self.tick_interval):
            now = time.monotonic()
            elapsed = (now - last) * self.speed
            last = now

            metadata_duration = None
            position = None
            ended = False
            with self._lock:
                if self._metadata_pending:
                    self._metadata_pending = False
                    metadata_duration = self._duration
                if self._playing:
                    self._position = min(self._position + elapsed, self._duration)
                    position = self._position
                    if self._position >= self._duration:
                        self._playing = False
                        ended = True
            handler = self._events

            if handler is None:
                continue
            try:
                if metadata_duration is not None:
                    handler.on_metadata_ready(metadata_duration)
                if position is not None:
                    handler.on_time_update(position)
                if ended:
                    handler.on_ended()
            except Exception as e:
                logger.error(f"[DEVICE] Event handler failed: {e}", exc_info=True)

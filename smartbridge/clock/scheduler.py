"""
Timer scheduling for Smart Bridge.

Every delayed action in the engine (autoplay attempts, highlight timers,
bridge label reveals) goes through a Scheduler so tests can substitute a
manual clock. Cooldown windows use Scheduler.now().
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Set

logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    """Handle for a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the callback. Cancelling a fired or cancelled handle is a no-op."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    """Source of time and delayed callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in seconds."""
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay seconds."""
        ...

    def shutdown(self) -> None:
        """Cancel everything still pending."""


class _ThreadTimerHandle(TimerHandle):
    def __init__(self, timer: threading.Timer):
        self._timer = timer
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler(Scheduler):
    """
    Production scheduler backed by threading.Timer and time.monotonic().

    Timer threads are daemons so a stuck callback never blocks interpreter
    exit; shutdown() cancels all pending timers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Set[threading.Timer] = set()

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer: threading.Timer

        def run() -> None:
            with self._lock:
                self._pending.discard(timer)
            try:
                callback()
            except Exception as e:
                logger.error(f"[SCHEDULER] Timer callback failed: {e}", exc_info=True)

        timer = threading.Timer(max(0.0, delay), run)
        timer.daemon = True
        with self._lock:
            self._pending.add(timer)
        timer.start()
        return _ThreadTimerHandle(timer)

    def shutdown(self) -> None:
        with self._lock:
            pending = list(self._pending)
            self._pending.clear()
        for timer in pending:
            timer.cancel()
        if pending:
            logger.debug(f"[SCHEDULER] Cancelled {len(pending)} pending timer(s)")

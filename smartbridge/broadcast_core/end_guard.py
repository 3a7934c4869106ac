"""
End-signal guard for Smart Bridge.

Source swaps on real playback devices can fire spurious completion
events. The guard accepts at most one end signal per loaded source,
enforces a cooldown between accepted signals across sources, and rejects
an end signal before any real playback progress has been observed for
the current source.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SEC = 0.35
DEFAULT_MIN_PROGRESS_SEC = 0.25


class EndSignalGuard:
    """Idempotency guard for "item ended" signals."""

    def __init__(self, cooldown_sec: float = DEFAULT_COOLDOWN_SEC, min_progress_sec: float = DEFAULT_MIN_PROGRESS_SEC):
        self.cooldown_sec = cooldown_sec
        self.min_progress_sec = min_progress_sec
        self._fired = False
        self._max_progress = 0.0
        self._last_accepted_at: Optional[float] = None

    def arm(self) -> None:
        """Reset per-source state for a newly loaded source. The cooldown clock survives."""
        self._fired = False
        self._max_progress = 0.0

    def reset(self) -> None:
        """Forget everything, including the cooldown clock (session reset)."""
        self.arm()
        self._last_accepted_at = None

    def note_progress(self, position: float) -> None:
        if position > self._max_progress:
            self._max_progress = position

    @property
    def progress(self) -> float:
        return self._max_progress

    def accept(self, now: float) -> bool:
        """
        Decide whether an end signal arriving at `now` is genuine.

        Returns:
            True exactly once per armed source, when the cooldown has
            elapsed and progress has been observed
        """
        if self._fired:
            logger.debug("[END_GUARD] Duplicate end for current source ignored")
            return False
        if self._last_accepted_at is not None and now - self._last_accepted_at < self.cooldown_sec:
            logger.debug(f"[END_GUARD] End within cooldown ({now - self._last_accepted_at:.3f}s) ignored")
            return False
        if self._max_progress < self.min_progress_sec:
            logger.debug(f"[END_GUARD] End before progress ({self._max_progress:.3f}s) ignored")
            return False
        self._fired = True
        self._last_accepted_at = now
        return True

"""
Preview Cap Enforcer for Smart Bridge.

In restricted (not owned) listening mode every item is truncated at a
fixed offset. When the time stream first reaches the cap while playing,
the enforcer reports it exactly once per item; the playback state machine
then pauses the device, rewinds it to zero and synthesizes an end signal.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

PREVIEW_CAP_SECONDS = 40.0
CAP_TOLERANCE_SECONDS = 0.05


class PreviewCapEnforcer:
    """Watches the time stream and fires on_cap_reached once per armed item."""

    def __init__(
        self,
        cap_sec: float = PREVIEW_CAP_SECONDS,
        on_cap_reached: Optional[Callable[[float], None]] = None,
        tolerance_sec: float = CAP_TOLERANCE_SECONDS,
    ):
        self.cap_sec = cap_sec
        self.tolerance_sec = tolerance_sec
        self._on_cap_reached = on_cap_reached
        self.enabled = False
        self._fired = False

    def set_callback(self, on_cap_reached: Optional[Callable[[float], None]]) -> None:
        self._on_cap_reached = on_cap_reached

    def arm(self) -> None:
        """Allow one more firing (called on every source swap)."""
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def on_time_update(self, position: float, is_playing: bool) -> bool:
        """
        Feed one time update.

        Returns:
            True if this update reached the cap and the callback fired
        """
        if not self.enabled or self._fired or not is_playing:
            return False
        if position < self.cap_sec - self.tolerance_sec:
            return False

        self._fired = True
        logger.info(f"[PREVIEW] Cap reached at {position:.2f}s (cap={self.cap_sec:.0f}s)")
        if self._on_cap_reached is not None:
            self._on_cap_reached(position)
        return True

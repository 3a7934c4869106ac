"""
Error types for Smart Bridge adaptive playback.

Only catalog loading and catalog validation raise to callers. Per-item
failures (ResolutionFailed, AutoplayBlocked) are handled inside the
playback state machine and only ever show up in logs and snapshots.
"""

from typing import Optional


class SmartBridgeError(Exception):
    """Base class for all Smart Bridge errors."""


class CatalogInvalid(SmartBridgeError):
    """Raised when a catalog has no playable songs."""


class CatalogLoadError(SmartBridgeError):
    """Raised when a published manifest cannot be located or fetched."""

    def __init__(self, message: str, release_id: Optional[str] = None):
        super().__init__(message)
        self.release_id = release_id


class RouteUnbuildable(SmartBridgeError):
    """Raised when a drawn route crosses a directed edge with no authored bridge."""

    def __init__(self, from_slot: int, to_slot: int):
        super().__init__(f"no bridge for edge {from_slot}-{to_slot}")
        self.from_slot = from_slot
        self.to_slot = to_slot


class ResolutionFailed(SmartBridgeError):
    """Raised when a source key cannot be turned into a playable URL."""

    def __init__(self, source_key: str, message: str = ""):
        super().__init__(message or f"failed to resolve source: {source_key}")
        self.source_key = source_key


class AutoplayBlocked(SmartBridgeError):
    """Raised (via a play future) when the device refuses to start playback."""

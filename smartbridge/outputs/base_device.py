from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Optional, Protocol


class DeviceEvents(Protocol):
    """
    Protocol for receivers of device-level events.

    The playback state machine implements this interface; the device is
    the only thing that calls it.
    """

    def on_ended(self) -> None:
        """Called when the current source plays to completion."""
        ...

    def on_time_update(self, position: float) -> None:
        """Called periodically with the playback position in seconds."""
        ...

    def on_metadata_ready(self, duration: float) -> None:
        """Called once the current source's metadata (duration) is known."""
        ...


class PlaybackDevice(ABC):
    """
    Abstract base class for the single shared playback device.

    Songs and bridges are played on the same device by swapping its
    source. Only the playback state machine may command it.
    """

    def __init__(self):
        self._events: Optional[DeviceEvents] = None

    def set_event_handler(self, handler: Optional[DeviceEvents]) -> None:
        self._events = handler

    @abstractmethod
    def set_source(self, url: str) -> None:
        """Load a new source; position resets to 0 and the device pauses."""
        ...

    @abstractmethod
    def play(self) -> Future:
        """
        Start playback of the loaded source.

        Returns:
            Future that resolves when playback started, or fails (for
            example with AutoplayBlocked) when the device refuses
        """
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def seek(self, position: float) -> None:
        ...

    @abstractmethod
    def get_current_time(self) -> float:
        ...

    def stop(self) -> None:
        """Pause and unload the current source."""
        self.pause()

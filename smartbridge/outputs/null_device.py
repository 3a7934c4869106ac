from concurrent.futures import Future

from .base_device import PlaybackDevice


class NullDevice(PlaybackDevice):
    """A device that accepts every command and never emits events. Useful for dry runs."""

    def __init__(self):
        super().__init__()
        self.source = ""
        self._position = 0.0

    def set_source(self, url: str) -> None:
        self.source = url
        self._position = 0.0

    def play(self) -> Future:
        future: Future = Future()
        future.set_result(None)
        return future

    def pause(self) -> None:
        # Nothing to pause
        return

    def seek(self, position: float) -> None:
        self._position = max(0.0, position)

    def get_current_time(self) -> float:
        return self._position

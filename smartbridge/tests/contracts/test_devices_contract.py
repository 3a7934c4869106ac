"""
Contract tests for playback devices and the threading scheduler.

Device tests drive state directly; only the scheduler tests use real
(short) timers.
"""

import threading
from unittest.mock import Mock

from smartbridge.broadcast_core.queue_builder import build_queue
from smartbridge.broadcast_core.state_machine import STATE_PLAYING_SONG, PlaybackStateMachine
from smartbridge.clock.scheduler import ThreadingScheduler
from smartbridge.errors import AutoplayBlocked
from smartbridge.outputs.null_device import NullDevice
from smartbridge.outputs.simulated_device import SimulatedDevice
from smartbridge.tests.contracts.test_doubles import FakeScheduler, FixedRng, ManualResolver, create_catalog


class TestNullDevice:
    def test_play_resolves_immediately(self):
        device = NullDevice()
        device.set_source("https://cdn.test/a.mp3")

        future = device.play()

        assert future.done()
        assert future.exception() is None

    def test_seek_clamps_negative(self):
        device = NullDevice()
        device.seek(-3.0)

        assert device.get_current_time() == 0.0


class TestSimulatedDevice:
    def test_play_without_source_fails(self):
        future = SimulatedDevice().play()

        assert isinstance(future.exception(), RuntimeError)

    def test_blocked_autoplay_until_user_gesture(self):
        device = SimulatedDevice(block_autoplay=True)
        device.set_source("a")

        refused = device.play()
        assert isinstance(refused.exception(), AutoplayBlocked)
        assert device.is_playing is False

        device.allow_autoplay()
        assert device.play().exception() is None
        assert device.is_playing is True

    def test_blocked_start_surfaces_in_machine(self):
        device = SimulatedDevice(block_autoplay=True)
        scheduler = FakeScheduler()
        machine = PlaybackStateMachine(device, ManualResolver(), scheduler)
        machine.start(build_queue(create_catalog((1, 2)), FixedRng(order=[0, 1])))
        scheduler.run_pending()

        assert machine.snapshot().autoplay_blocked is True

        device.allow_autoplay()
        machine.user_play()

        assert machine.state == STATE_PLAYING_SONG

    def test_set_source_resets_position_and_pauses(self):
        device = SimulatedDevice(default_duration=60.0)
        device.set_source("a")
        device.play()
        device.seek(30.0)

        device.set_source("b")

        assert device.get_current_time() == 0.0
        assert device.is_playing is False
        assert device.source == "b"

    def test_seek_is_clamped_to_duration(self):
        device = SimulatedDevice(default_duration=60.0)
        device.set_source("a")

        device.seek(500.0)
        assert device.get_current_time() == 60.0

        device.seek(-1.0)
        assert device.get_current_time() == 0.0

    def test_duration_lookup(self):
        device = SimulatedDevice(default_duration=60.0, duration_for=lambda url: 12.0 if "bridge" in url else None)
        device.set_source("https://cdn.test/bridge.mp3")

        device.seek(100.0)

        assert device.get_current_time() == 12.0

    def test_stop_unloads(self):
        device = SimulatedDevice()
        device.set_source("a")
        device.play()

        device.stop()

        assert device.source == ""
        assert device.is_playing is False

    def test_ticker_emits_metadata_time_and_end(self):
        device = SimulatedDevice(default_duration=1.0, tick_interval=0.01, speed=50.0)
        ended = threading.Event()
        handler = Mock()
        handler.on_ended.side_effect = lambda: ended.set()
        device.set_event_handler(handler)
        device.set_source("a")
        device.play()

        device.start()
        try:
            assert ended.wait(5.0), "Simulated source should reach its end"
        finally:
            device.close()

        handler.on_metadata_ready.assert_called_with(1.0)
        assert handler.on_time_update.called
        assert device.is_playing is False


class TestThreadingScheduler:
    def test_call_later_runs(self):
        scheduler = ThreadingScheduler()
        fired = threading.Event()

        scheduler.call_later(0.01, fired.set)

        assert fired.wait(2.0)

    def test_cancelled_timer_does_not_run(self):
        scheduler = ThreadingScheduler()
        callback = Mock()

        handle = scheduler.call_later(0.2, callback)
        handle.cancel()
        scheduler.shutdown()

        assert handle.cancelled is True
        threading.Event().wait(0.3)
        callback.assert_not_called()

    def test_callback_exception_is_contained(self):
        scheduler = ThreadingScheduler()
        after = threading.Event()

        scheduler.call_later(0.0, Mock(side_effect=RuntimeError("boom")))
        scheduler.call_later(0.02, after.set)

        assert after.wait(2.0)

    def test_now_is_monotonic(self):
        scheduler = ThreadingScheduler()
        first = scheduler.now()

        assert scheduler.now() >= first

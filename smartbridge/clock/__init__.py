"""
Clock package for Smart Bridge.

Provides time and timer services to the playback engine.
"""

from smartbridge.clock.scheduler import Scheduler, ThreadingScheduler, TimerHandle

__all__ = ["Scheduler", "ThreadingScheduler", "TimerHandle"]

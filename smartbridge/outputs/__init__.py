"""
Playback device implementations for Smart Bridge.

The engine drives exactly one device; these are the device types shipped
with the package.
"""

from .base_device import DeviceEvents, PlaybackDevice
from .null_device import NullDevice
from .simulated_device import SimulatedDevice

__all__ = [
    "DeviceEvents",
    "PlaybackDevice",
    "NullDevice",
    "SimulatedDevice",
]

"""
Smart Bridge - adaptive album playback.

Plays an album's songs in a random order, joined by authored bridge
clips, through a single shared playback device.
"""

__version__ = "0.1.0"

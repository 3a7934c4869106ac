"""
Application layer for Smart Bridge: configuration, the adaptive playback
service and the command line runner.
"""

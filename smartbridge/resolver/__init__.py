"""
Source resolution for Smart Bridge.
"""

from smartbridge.resolver.source_resolver import ItemSourceCache, PlaybackUrlClient, SourceResolver

__all__ = ["ItemSourceCache", "PlaybackUrlClient", "SourceResolver"]

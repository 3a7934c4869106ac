"""
Catalog package for Smart Bridge.

Typed catalog entities and the manifest loader.
"""

from smartbridge.catalog.models import Catalog, Connection, MediaRef, Song, edge_key, normalize_catalog
from smartbridge.catalog.loader import CatalogLoader, catalog_from_manifest

__all__ = [
    "Catalog",
    "Connection",
    "MediaRef",
    "Song",
    "edge_key",
    "normalize_catalog",
    "CatalogLoader",
    "catalog_from_manifest",
]

"""
Catalog Loader for Smart Bridge.

Fetches a published release manifest over HTTP and normalizes it into a
Catalog. Published manifests can arrive in a few historical shapes:

- { shareId, snapshot: { project: {...} } }
- { snapshot: {...project fields...} }
- {...project fields...}

Songs live under catalog.songs (or a legacy flat "tracks" list) and
connections under one of "connections", "catalog.connections" or
"songs.connections".
"""

import logging
import re
from typing import Any, Dict, Mapping, Optional

import httpx

from smartbridge.catalog.models import Catalog, normalize_catalog, safe_string
from smartbridge.errors import CatalogLoadError

logger = logging.getLogger(__name__)

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)
_SHARE_ID = re.compile(r"^[a-f0-9]{24}$", re.IGNORECASE)


def _child(obj: Any, key: str) -> Optional[Mapping[str, Any]]:
    value = obj.get(key) if isinstance(obj, Mapping) else None
    return value if isinstance(value, Mapping) else None


def _pick(obj: Mapping[str, Any], *paths: str) -> str:
    """Return the first non-empty string found at any dotted path."""
    for path in paths:
        node: Any = obj
        for part in path.split("."):
            node = node.get(part) if isinstance(node, Mapping) else None
        value = safe_string(node)
        if value:
            return value
    return ""


def unwrap_project(document: Any) -> Mapping[str, Any]:
    """Strip the optional snapshot/project wrappers from a manifest."""
    snapshot = _child(document, "snapshot") or (document if isinstance(document, Mapping) else {})
    return _child(snapshot, "project") or snapshot


def extract_connections(project: Mapping[str, Any]) -> Dict[str, Any]:
    for node in (project, _child(project, "catalog"), _child(project, "songs")):
        connections = _child(node, "connections")
        if connections:
            return dict(connections)
    return {}


def extract_songs(project: Mapping[str, Any]) -> list:
    catalog = _child(project, "catalog")
    songs = catalog.get("songs") if catalog else None
    if isinstance(songs, list):
        return songs
    tracks = project.get("tracks")
    if isinstance(tracks, list):
        return tracks
    return []


def catalog_from_manifest(document: Any, release_id: str = "") -> Catalog:
    """
    Normalize an already-fetched manifest document.

    Raises:
        CatalogInvalid: If the manifest has no playable songs
    """
    project = unwrap_project(document)
    return normalize_catalog(
        extract_songs(project),
        extract_connections(project),
        release_id=release_id,
        title=_pick(project, "album.title", "albumTitle", "projectName"),
        artist=_pick(project, "album.artist", "albumArtist", "performerName", "company"),
    )


class CatalogLoader:
    """
    Loads release catalogs from the publish endpoint.

    Stateless apart from the HTTP client; every call fetches a fresh
    manifest (no caching).
    """

    def __init__(self, api_base: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        """
        Initialize catalog loader.

        Args:
            api_base: Backend base URL (publish manifests live under /publish)
            timeout: HTTP timeout in seconds
            client: Optional preconfigured httpx.Client (tests inject a MockTransport)
        """
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def manifest_url(self, release_id: str) -> str:
        """
        Resolve a release id (share id or full URL) to its manifest URL.

        Raises:
            CatalogLoadError: If the id is empty or not recognized
        """
        value = safe_string(release_id)
        if not value:
            raise CatalogLoadError("missing release id", release_id=release_id)
        if _HTTP_URL.match(value):
            return value
        if _SHARE_ID.match(value):
            return f"{self.api_base}/publish/{value}.json"
        raise CatalogLoadError(f"unknown release id: {value}", release_id=release_id)

    def load_catalog(self, release_id: str) -> Catalog:
        """
        Fetch and normalize the catalog for one release.

        Raises:
            CatalogLoadError: If the manifest cannot be fetched or parsed
            CatalogInvalid: If the manifest has no playable songs
        """
        url = self.manifest_url(release_id)
        try:
            response = self._client.get(url, headers={"Cache-Control": "no-store"})
            response.raise_for_status()
            document = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogLoadError(f"manifest HTTP {e.response.status_code}", release_id=release_id) from e
        except (httpx.HTTPError, ValueError) as e:
            raise CatalogLoadError(f"failed to fetch manifest: {e}", release_id=release_id) from e

        logger.info(f"[CATALOG] Loaded manifest for '{release_id}' from {url}")
        return catalog_from_manifest(document, release_id=release_id)

    def close(self) -> None:
        self._client.close()

"""
Catalog Model for Smart Bridge.

Normalizes raw song/connection records from a published manifest into
typed, immutable entities. No algorithm lives here, only shape validation.

A Song is playable when at least one of its variants ("a" / "b") carries a
non-empty source key. A Connection is the directed record for one ordered
song pair; connections without a bridge source key are dropped so the
queue builder never sees them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple

from smartbridge.errors import CatalogInvalid

logger = logging.getLogger(__name__)

Choice = Literal["a", "b"]
CHOICES: Tuple[str, str] = ("a", "b")


def safe_string(value: Any) -> str:
    """Coerce anything (including None) to a trimmed string."""
    if value is None:
        return ""
    return str(value).strip()


def edge_key(from_slot: int, to_slot: int) -> str:
    """Return the manifest key for a directed edge: "<from>-<to>"."""
    return f"{int(from_slot)}-{int(to_slot)}"


def normalize_choice(value: Any) -> Choice:
    """Anything other than "b" is variant "a"."""
    return "b" if safe_string(value).lower() == "b" else "a"


@dataclass(frozen=True)
class MediaRef:
    """Opaque resolvable identifier for an audio object."""
    source_key: str

    @property
    def is_resolvable(self) -> bool:
        return bool(self.source_key)


@dataclass(frozen=True)
class Song:
    """
    A catalog track with one or two recorded variants.

    Attributes:
        slot: Stable, unique, positive ordinal
        title: Display title
        variants: Mapping of choice ("a"/"b") to MediaRef
    """
    slot: int
    title: str
    variants: Mapping[str, MediaRef] = field(default_factory=dict)

    @property
    def is_playable(self) -> bool:
        return any(ref.is_resolvable for ref in self.variants.values())

    def variant_for(self, choice: str) -> Tuple[str, MediaRef]:
        """
        Return (choice, MediaRef) for the requested variant.

        Falls back to the other variant when the requested one has no
        source key.

        Raises:
            CatalogInvalid: If the song has no playable variant at all
        """
        preferred = self.variants.get(choice)
        if preferred is not None and preferred.is_resolvable:
            return choice, preferred
        for other in CHOICES:
            ref = self.variants.get(other)
            if ref is not None and ref.is_resolvable:
                logger.debug(f"[CATALOG] Song {self.slot} has no variant '{choice}', using '{other}'")
                return other, ref
        raise CatalogInvalid(f"song {self.slot} has no playable variant")


@dataclass(frozen=True)
class Connection:
    """Directed edge (from_slot -> to_slot) with its authored bridge clip."""
    from_slot: int
    to_slot: int
    from_choice: Choice
    to_choice: Choice
    bridge: MediaRef
    locked: bool = False

    @property
    def key(self) -> str:
        return edge_key(self.from_slot, self.to_slot)


@dataclass(frozen=True)
class Catalog:
    """
    Immutable view of one loaded release.

    Songs are ordered by slot. Connections are keyed by "<from>-<to>".
    """
    songs: Tuple[Song, ...]
    connections: Mapping[str, Connection]
    release_id: str = ""
    title: str = ""
    artist: str = ""

    @property
    def playable_slots(self) -> List[int]:
        return [song.slot for song in self.songs if song.is_playable]

    def song(self, slot: int) -> Optional[Song]:
        for song in self.songs:
            if song.slot == slot:
                return song
        return None

    def connection(self, from_slot: int, to_slot: int) -> Optional[Connection]:
        return self.connections.get(edge_key(from_slot, to_slot))


def _media_ref(raw: Any) -> Optional[MediaRef]:
    if not isinstance(raw, Mapping):
        return None
    key = safe_string(raw.get("sourceKey")) or safe_string(raw.get("s3Key"))
    return MediaRef(source_key=key)


def _song_variants(raw: Mapping[str, Any]) -> Dict[str, MediaRef]:
    variants: Dict[str, MediaRef] = {}

    declared = raw.get("variants")
    if isinstance(declared, Mapping):
        for choice in CHOICES:
            ref = _media_ref(declared.get(choice))
            if ref is not None:
                variants[choice] = ref

    files = raw.get("files")
    if isinstance(files, Mapping):
        for choice in CHOICES:
            if choice in variants:
                continue
            ref = _media_ref(files.get(choice))
            if ref is not None:
                variants[choice] = ref
        # Single-take releases only publish the album master
        if "a" not in variants or not variants["a"].is_resolvable:
            album_ref = _media_ref(files.get("album"))
            if album_ref is not None and album_ref.is_resolvable:
                variants["a"] = album_ref

    # Legacy flat tracks carry the key at the top level
    if not variants:
        ref = _media_ref(raw)
        if ref is not None and ref.is_resolvable:
            variants["a"] = ref

    return variants


def normalize_song(raw: Any, position: int) -> Optional[Song]:
    """
    Normalize one raw song record.

    Args:
        raw: Raw record from the manifest
        position: Zero-based index in the raw list (slot fallback)

    Returns:
        Song, or None if the record is not a mapping
    """
    if not isinstance(raw, Mapping):
        return None

    try:
        slot = int(raw.get("slot"))
    except (TypeError, ValueError):
        slot = 0
    if slot <= 0:
        slot = position + 1

    title_json = raw.get("titleJson")
    title = (
        safe_string(raw.get("title"))
        or (safe_string(title_json.get("title")) if isinstance(title_json, Mapping) else "")
        or safe_string(raw.get("name"))
        or f"Track {slot}"
    )

    return Song(slot=slot, title=title, variants=_song_variants(raw))


def normalize_connection(key: str, raw: Any) -> Optional[Connection]:
    """
    Normalize one raw connection record.

    Slots come from the record when present, otherwise from the
    "<from>-<to>" key. Returns None when the key is malformed or the
    bridge has no source key.
    """
    if not isinstance(raw, Mapping):
        return None

    from_slot = raw.get("fromSlot")
    to_slot = raw.get("toSlot")
    if from_slot is None or to_slot is None:
        parts = safe_string(key).split("-")
        if len(parts) != 2:
            return None
        from_slot, to_slot = parts
    try:
        from_slot = int(from_slot)
        to_slot = int(to_slot)
    except (TypeError, ValueError):
        return None

    bridge = _media_ref(raw.get("bridge")) or MediaRef(source_key="")
    if not bridge.is_resolvable:
        bridge_raw = raw.get("bridge")
        playback_url = safe_string(bridge_raw.get("playbackUrl")) if isinstance(bridge_raw, Mapping) else ""
        if not playback_url:
            return None
        bridge = MediaRef(source_key=playback_url)

    return Connection(
        from_slot=from_slot,
        to_slot=to_slot,
        from_choice=normalize_choice(raw.get("fromChoice")),
        to_choice=normalize_choice(raw.get("toChoice")),
        bridge=bridge,
        locked=bool(raw.get("locked")),
    )


def normalize_catalog(
    raw_songs: Iterable[Any],
    raw_connections: Optional[Mapping[str, Any]] = None,
    release_id: str = "",
    title: str = "",
    artist: str = "",
) -> Catalog:
    """
    Build a Catalog from raw manifest records.

    Args:
        raw_songs: Iterable of raw song records
        raw_connections: Mapping of "<from>-<to>" to raw connection records
        release_id: Identifier of the release the records belong to
        title: Album title
        artist: Album artist

    Returns:
        Catalog containing only playable songs and usable edges

    Raises:
        CatalogInvalid: If no playable song remains after normalization
    """
    by_slot: Dict[int, Song] = {}
    for position, raw in enumerate(raw_songs or []):
        song = normalize_song(raw, position)
        if song is None:
            continue
        if song.slot in by_slot:
            logger.warning(f"[CATALOG] Duplicate slot {song.slot} ignored ('{song.title}')")
            continue
        if not song.is_playable:
            logger.debug(f"[CATALOG] Song {song.slot} has no playable variant, skipped")
            continue
        by_slot[song.slot] = song

    if not by_slot:
        raise CatalogInvalid(f"release '{release_id}' has no playable songs")

    connections: Dict[str, Connection] = {}
    for key, raw in (raw_connections or {}).items():
        conn = normalize_connection(key, raw)
        if conn is None:
            continue
        if conn.from_slot not in by_slot or conn.to_slot not in by_slot:
            logger.debug(f"[CATALOG] Edge {conn.key} references an unknown song, dropped")
            continue
        if conn.from_slot == conn.to_slot:
            continue
        connections[conn.key] = conn

    songs = tuple(by_slot[slot] for slot in sorted(by_slot))
    logger.info(f"[CATALOG] Normalized release '{release_id}': {len(songs)} song(s), {len(connections)} edge(s)")
    return Catalog(
        songs=songs,
        connections=connections,
        release_id=release_id,
        title=title,
        artist=artist,
    )

"""
Collection Store for Smart Bridge.

Persists the "my collection" list of owned release ids. Releases in the
collection play unrestricted; everything else plays in preview mode.
"""

import json
import logging
import os
import threading
import time
from typing import List, Optional

logger = logging.getLogger(__name__)


class CollectionStore:
    """
    JSON-backed list of owned release ids, newest first.

    Uses a temporary file + atomic rename to ensure crash resistance.
    Records look like {"shareId": "...", "addedAt": 1700000000000}.
    """

    def __init__(self, path: str = "/tmp/smartbridge_collection.json"):
        """
        Initialize collection store.

        Args:
            path: Path to JSON collection file
        """
        self.path = path
        self._lock = threading.Lock()
        logger.debug(f"CollectionStore initialized with path: {path}")

    def _load_records(self) -> List[dict]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"[COLLECTION] Failed to load collection: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"[COLLECTION] Unexpected collection format in {self.path}")
            return []
        return [r for r in data if isinstance(r, dict) and str(r.get("shareId") or "").strip()]

    def _save_records(self, records: List[dict]) -> None:
        tmp = self.path + ".tmp"
        try:
            with open(tmp, "w") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error(f"[COLLECTION] Failed to save collection: {e}")
            # Clean up temp file on error
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def get_ids(self) -> List[str]:
        """Return owned release ids, newest first."""
        with self._lock:
            return [str(r["shareId"]).strip() for r in self._load_records()]

    def contains(self, release_id: str) -> bool:
        return str(release_id or "").strip() in self.get_ids()

    def upsert(self, release_id: str, added_at: Optional[int] = None) -> bool:
        """
        Add a release id at the front of the collection.

        An id that is already present moves to the front.

        Returns:
            True if the id was new
        """
        share_id = str(release_id or "").strip()
        if not share_id:
            raise ValueError("release id must not be empty")

        with self._lock:
            records = self._load_records()
            existing = [r for r in records if str(r["shareId"]).strip() == share_id]
            rest = [r for r in records if str(r["shareId"]).strip() != share_id]
            record = existing[0] if existing else {"shareId": share_id}
            if not existing:
                record["addedAt"] = added_at if added_at is not None else int(time.time() * 1000)
            self._save_records([record] + rest)

        if existing:
            logger.debug(f"[COLLECTION] Moved {share_id} to front")
        else:
            logger.info(f"[COLLECTION] Added {share_id}")
        return not existing

"""
Source Resolver Client for Smart Bridge.

Turns opaque source keys into playable URLs through the backend's
URL-signing endpoint (GET /api/playback-url?s3Key=...).

Resolution is asynchronous: resolve() returns a concurrent.futures.Future
so the playback state machine can keep handling device events while a
request is in flight. This client is transport-only; it makes no
decisions about what happens when resolution fails.
"""

import logging
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Optional, Protocol

import httpx

from smartbridge.errors import ResolutionFailed

logger = logging.getLogger(__name__)

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


class SourceResolver(Protocol):
    """Anything that can resolve a source key to a URL asynchronously."""

    def resolve(self, source_key: str) -> Future:
        """
        Resolve a source key.

        Returns:
            Future resolving to a URL string, or failing with ResolutionFailed
        """
        ...


class PlaybackUrlClient:
    """
    Client for the backend's playback URL signing API.

    Requests run on a small thread pool; each key is attempted up to
    max_attempts times before the future fails with ResolutionFailed.
    Keys that are already http(s) URLs are returned unchanged.
    """

    def __init__(
        self,
        api_base: str,
        timeout: float = 5.0,
        max_attempts: int = 2,
        client: Optional[httpx.Client] = None,
        max_workers: int = 2,
    ):
        """
        Initialize playback URL client.

        Args:
            api_base: Backend base URL
            timeout: HTTP timeout in seconds per attempt
            max_attempts: Attempts per key (>= 1)
            client: Optional preconfigured httpx.Client
            max_workers: Size of the request thread pool
        """
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self._client = client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="resolver")

        # Suppress httpx INFO level logging (one line per signed URL otherwise)
        logging.getLogger("httpx").setLevel(logging.WARNING)

        logger.info(f"PlaybackUrlClient initialized (url={self.api_base}, attempts={self.max_attempts})")

    def resolve(self, source_key: str) -> Future:
        return self._executor.submit(self.resolve_sync, source_key)

    def resolve_sync(self, source_key: str) -> str:
        """
        Resolve a source key on the calling thread.

        Raises:
            ResolutionFailed: If every attempt fails or the response has no URL
        """
        key = (source_key or "").strip()
        if not key:
            raise ResolutionFailed(source_key, "empty source key")
        if _HTTP_URL.match(key):
            return key

        url = f"{self.api_base}/api/playback-url"
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._client.get(url, params={"s3Key": key}, headers={"Cache-Control": "no-store"})
                response.raise_for_status()
                body = response.json()
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(f"[RESOLVER] Attempt {attempt}/{self.max_attempts} failed for {key}: {e}")
                continue

            signed = str(body.get("url") or body.get("playbackUrl") or "").strip() if isinstance(body, dict) else ""
            if signed:
                return signed
            last_error = ValueError("response has no url")
            logger.warning(f"[RESOLVER] Attempt {attempt}/{self.max_attempts} returned no url for {key}")

        raise ResolutionFailed(key, f"failed to resolve {key}: {last_error}")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._client.close()


def _failed(future: Future) -> bool:
    if not future.done():
        return False
    return future.cancelled() or future.exception() is not None


class ItemSourceCache:
    """
    Per-queue-item resolution cache.

    Keeps the resolution future for each queue item so an item that is
    loaded again mid-session (for example after a user retry) is not
    re-signed. Failed resolutions are evicted so the next load tries
    again. Cleared on every session reset.
    """

    def __init__(self, resolver: SourceResolver):
        self._resolver = resolver
        self._lock = threading.Lock()
        self._futures: Dict[str, Future] = {}

    def resolve_item(self, item_key: str, source_key: str) -> Future:
        with self._lock:
            cached = self._futures.get(item_key)
            if cached is not None and not _failed(cached):
                return cached
            try:
                future = self._resolver.resolve(source_key)
            except Exception as e:
                # Resolver refused synchronously; surface it the same way as an async failure
                future = Future()
                future.set_exception(e if isinstance(e, ResolutionFailed) else ResolutionFailed(source_key, str(e)))
            self._futures[item_key] = future

        future.add_done_callback(lambda f: self._evict_failed(item_key, f))
        return future

    def _evict_failed(self, item_key: str, future: Future) -> None:
        if _failed(future):
            with self._lock:
                if self._futures.get(item_key) is future:
                    del self._futures[item_key]

    def clear(self) -> None:
        with self._lock:
            self._futures.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._futures)

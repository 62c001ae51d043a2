"""
ListingCache - In-memory cache of directory listings.

Listings are stored with the ETag the server sent, so a later fetch can
ask "has this changed?" with If-None-Match and reuse the cached copy on 304.
Uploading into a directory invalidates its entry.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """'photos/2024/' and '/photos/2024' name the same directory."""
    value = (path or "").strip().strip("/")
    return f"/{value}" if value else "/"


@dataclass
class CachedListing:
    etag: Optional[str]
    entries: List[Dict[str, Any]]


class ListingCache:
    """Directory listings keyed by normalized path."""

    def __init__(self):
        self._cache: Dict[str, CachedListing] = {}

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, path: str) -> Optional[CachedListing]:
        return self._cache.get(normalize_path(path))

    def put(self, path: str, entries: List[Dict[str, Any]], etag: Optional[str] = None) -> None:
        key = normalize_path(path)
        self._cache[key] = CachedListing(etag=etag, entries=list(entries))
        logger.debug("ListingCache: stored %d entries for %s (etag=%s)", len(entries), key, etag)

    def invalidate(self, path: str) -> None:
        """Drop the cached listing for path (no-op if absent)."""
        key = normalize_path(path)
        if self._cache.pop(key, None) is not None:
            logger.debug("ListingCache: invalidated %s", key)

    def invalidate_prefix(self, path: str) -> int:
        """Drop path and everything below it. Returns number of entries removed."""
        key = normalize_path(path)
        prefix = key.rstrip("/") + "/"
        doomed = [k for k in self._cache if k == key or k.startswith(prefix)]
        for k in doomed:
            del self._cache[k]
        if doomed:
            logger.debug("ListingCache: invalidated %d entries under %s", len(doomed), key)
        return len(doomed)

    def clear(self) -> None:
        self._cache.clear()


class DirectoryListingClient:
    """
    Fetches directory listings, revalidating cached ones with ETags.

    Implements the listing side of the file API: GET {endpoint}?path=...
    returning {"success": true, "data": [...]}.
    """

    def __init__(self, client: httpx.AsyncClient, cache: ListingCache, endpoint: str = "/api/files"):
        self._client = client
        self._cache = cache
        self._endpoint = endpoint

    async def get_files(self, path: str) -> List[Dict[str, Any]]:
        key = normalize_path(path)
        cached = self._cache.get(key)
        headers = {}
        if cached is not None and cached.etag:
            headers["If-None-Match"] = cached.etag

        response = await self._client.get(self._endpoint, params={"path": key}, headers=headers)

        if response.status_code == 304 and cached is not None:
            logger.debug(f"Listing for {key} not modified, using cache")
            return list(cached.entries)

        if response.status_code >= 400:
            try:
                error_detail = response.json().get("message")
            except (ValueError, AttributeError):
                error_detail = None
            raise RuntimeError(
                error_detail or f"Failed to fetch files (status: {response.status_code})"
            )

        body = response.json()
        if not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else None
            raise RuntimeError(message or "API returned success:false")

        entries = body.get("data") or []
        self._cache.put(key, entries, response.headers.get("ETag"))
        return list(entries)

"""
Response cache for the upgrade pipeline.

Stores successful (HTTP 200) GitHub API responses keyed by their exact
request URL so repeat checks within the cache lifetime do not touch the
network.
"""

import json
import os
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.structures import CaseInsensitiveDict

from ghupgrade.constants import CACHE_LIFETIME_SECONDS, RESPONSE_CACHE_FILE
from ghupgrade.log_utils import logger

from .files import _atomic_write_json
from .interfaces import CachedEntry


def _parse_iso_datetime_utc(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp and normalize it to UTC.

    Returns:
        A timezone-aware datetime in UTC if parsing succeeds, `None` otherwise.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def entry_from_response(response: requests.Response) -> CachedEntry:
    """
    Capture the headers and body of a live response for storage.
    """
    headers = {name: [value] for name, value in response.headers.items()}
    return CachedEntry(
        headers=headers,
        body=response.text,
        stored_at=datetime.now(timezone.utc),
    )


def response_from_entry(url: str, entry: CachedEntry) -> requests.Response:
    """
    Rebuild a 200 response from a cached entry.

    The result carries the stored headers and body, so callers parsing it
    cannot tell it apart from a live response.
    """
    response = requests.Response()
    response.status_code = 200
    response.url = url
    response.reason = "OK"
    response.headers = CaseInsensitiveDict(
        {name: ", ".join(values) for name, values in entry.headers.items()}
    )
    response.encoding = "utf-8"
    response._content = entry.body.encode("utf-8")
    return response


class ResponseCache(ABC):
    """
    Key/value store for cached responses with provider-side expiry.

    `get` on an expired or unknown key returns None. Callers only `put`
    responses that came back with HTTP 200.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[CachedEntry]:
        """Return the live entry stored for `key`, or None."""

    @abstractmethod
    def put(self, key: str, entry: CachedEntry) -> None:
        """Store `entry` under `key`, replacing any previous value."""

    @abstractmethod
    def clear(self) -> bool:
        """Drop every stored entry."""


class MemoryResponseCache(ResponseCache):
    """In-process response cache; entries live for `lifetime_seconds` after `put`."""

    def __init__(
        self,
        lifetime_seconds: float = CACHE_LIFETIME_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock
        self._entries: Dict[str, tuple] = {}

    def get(self, key: str) -> Optional[CachedEntry]:
        stored = self._entries.get(key)
        if stored is None:
            return None
        expires_at, entry = stored
        if self._clock() >= expires_at:
            return None
        return entry

    def put(self, key: str, entry: CachedEntry) -> None:
        self._entries[key] = (self._clock() + self.lifetime_seconds, entry)

    def clear(self) -> bool:
        self._entries.clear()
        return True


class FileResponseCache(ResponseCache):
    """
    Response cache persisted as a single JSON file in the cache directory.

    Cache file schema:
      { "<url>": { "headers": {name: [values]}, "body": "...", "cached_at": "<iso-8601 UTC>" }, ... }

    Writes replace the whole file atomically (last writer wins). Expired
    entries are ignored on read but not removed.
    """

    def __init__(
        self,
        cache_dir: str,
        lifetime_seconds: float = CACHE_LIFETIME_SECONDS,
    ):
        """
        Initialize the cache with its directory.

        Parameters:
            cache_dir (str): Directory holding the cache file; created if missing.
            lifetime_seconds (float): Age after which an entry is treated as absent.
        """
        self.cache_dir = cache_dir
        self.lifetime_seconds = lifetime_seconds
        self.cache_file = os.path.join(cache_dir, RESPONSE_CACHE_FILE)
        self._ensure_cache_dir_exists()

    def _ensure_cache_dir_exists(self) -> None:
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create cache directory {self.cache_dir}: {e}")
            raise

    def _read_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.cache_file):
            return {}
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (IOError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Could not read JSON file {self.cache_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> Optional[CachedEntry]:
        """
        Return the cached response for `key` if present and younger than the lifetime.

        Malformed entries are treated as absent.
        """
        raw = self._read_all().get(key)
        if not isinstance(raw, dict):
            return None

        stored_at = _parse_iso_datetime_utc(raw.get("cached_at"))
        headers = raw.get("headers")
        body = raw.get("body")
        if stored_at is None or not isinstance(headers, dict) or not isinstance(body, str):
            logger.debug("Ignoring invalid response cache entry for %s", key)
            return None

        age_s = (datetime.now(timezone.utc) - stored_at).total_seconds()
        if age_s >= self.lifetime_seconds:
            logger.debug(
                "Cache stale for %s (age %.0fs >= %ss)", key, age_s, self.lifetime_seconds
            )
            return None

        normalized: Dict[str, List[str]] = {}
        for name, values in headers.items():
            if isinstance(values, list):
                normalized[str(name)] = [str(v) for v in values]
            else:
                normalized[str(name)] = [str(values)]

        logger.debug("Using cached response for %s (cached %.0fs ago)", key, age_s)
        return CachedEntry(headers=normalized, body=body, stored_at=stored_at)

    def put(self, key: str, entry: CachedEntry) -> None:
        cache = self._read_all()
        cache[key] = {
            "headers": entry.headers,
            "body": entry.body,
            "cached_at": entry.stored_at.isoformat(),
        }
        if _atomic_write_json(self.cache_file, cache):
            logger.debug("Saved response for %s to cache", key)

    def clear(self) -> bool:
        """
        Delete the cache file from disk.

        Returns:
            True if the file was removed or did not exist, False if an error occurred.
        """
        try:
            if os.path.exists(self.cache_file):
                os.remove(self.cache_file)
            return True
        except OSError as e:
            logger.error(f"Could not clear cache file {self.cache_file}: {e}")
            return False

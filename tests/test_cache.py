"""
Tests for the response cache

Covers:
- Rebuilding responses from cached entries
- In-memory expiry with an injected clock
- File-backed storage, staleness and malformed entries
"""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest

from ghupgrade.upgrade.cache import (
    FileResponseCache,
    MemoryResponseCache,
    _parse_iso_datetime_utc,
    entry_from_response,
    response_from_entry,
)
from ghupgrade.upgrade.interfaces import CachedEntry

pytestmark = [pytest.mark.unit, pytest.mark.infrastructure]

URL = "https://api.github.com/repos/acme/blog/releases/latest"


def _entry(body='{"tag_name": "v1.0.0"}', stored_at=None):
    return CachedEntry(
        headers={"Content-Type": ["application/json"], "ETag": ['"abc"']},
        body=body,
        stored_at=stored_at or datetime.now(timezone.utc),
    )


class TestResponseConversion:
    def test_response_from_entry_is_a_200(self):
        response = response_from_entry(URL, _entry())

        assert response.status_code == 200
        assert response.url == URL
        assert response.headers["content-type"] == "application/json"
        assert response.content == b'{"tag_name": "v1.0.0"}'
        assert response.json() == {"tag_name": "v1.0.0"}

    def test_multi_value_headers_are_joined(self):
        entry = CachedEntry(
            headers={"Vary": ["Accept", "Authorization"]},
            body="",
            stored_at=datetime.now(timezone.utc),
        )
        response = response_from_entry(URL, entry)
        assert response.headers["Vary"] == "Accept, Authorization"

    def test_entry_from_response_captures_headers_and_body(self, make_response):
        live = make_response(200, {"tag_name": "v2"}, {"Content-Type": "application/json"})

        entry = entry_from_response(live)

        assert entry.headers == {"Content-Type": ["application/json"]}
        assert json.loads(entry.body) == {"tag_name": "v2"}
        assert entry.stored_at.tzinfo is not None


class TestParseIsoDatetime:
    def test_zulu_suffix(self):
        parsed = _parse_iso_datetime_utc("2025-01-02T03:04:05Z")
        assert parsed == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_naive_is_treated_as_utc(self):
        parsed = _parse_iso_datetime_utc("2025-01-02T03:04:05")
        assert parsed.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "not a date", 42])
    def test_invalid_returns_none(self, value):
        assert _parse_iso_datetime_utc(value) is None


class TestMemoryResponseCache:
    def test_get_unknown_key(self):
        assert MemoryResponseCache().get(URL) is None

    def test_put_then_get(self):
        cache = MemoryResponseCache()
        entry = _entry()
        cache.put(URL, entry)
        assert cache.get(URL) is entry

    def test_entry_expires_after_lifetime(self):
        now = [0.0]
        cache = MemoryResponseCache(lifetime_seconds=10, clock=lambda: now[0])
        cache.put(URL, _entry())

        now[0] = 9.9
        assert cache.get(URL) is not None
        now[0] = 10.0
        assert cache.get(URL) is None

    def test_keys_are_exact_urls(self):
        cache = MemoryResponseCache()
        cache.put(URL, _entry())
        assert cache.get(URL + "?page=2") is None

    def test_clear(self):
        cache = MemoryResponseCache()
        cache.put(URL, _entry())
        assert cache.clear() is True
        assert cache.get(URL) is None


class TestFileResponseCache:
    def test_creates_cache_dir(self, tmp_path):
        cache_dir = tmp_path / "nested" / "cache"
        FileResponseCache(str(cache_dir))
        assert cache_dir.is_dir()

    def test_put_persists_schema(self, tmp_path):
        cache = FileResponseCache(str(tmp_path))
        stored_at = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)
        cache.put(URL, _entry(stored_at=stored_at))

        with open(cache.cache_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        assert data[URL]["body"] == '{"tag_name": "v1.0.0"}'
        assert data[URL]["headers"]["ETag"] == ['"abc"']
        assert data[URL]["cached_at"] == stored_at.isoformat()

    def test_get_fresh_entry(self, tmp_path):
        cache = FileResponseCache(str(tmp_path))
        cache.put(URL, _entry())

        entry = FileResponseCache(str(tmp_path)).get(URL)

        assert entry is not None
        assert entry.body == '{"tag_name": "v1.0.0"}'
        assert entry.headers["Content-Type"] == ["application/json"]

    def test_stale_entry_behaves_as_absent(self, tmp_path):
        cache = FileResponseCache(str(tmp_path), lifetime_seconds=3600)
        cache.put(URL, _entry(stored_at=datetime.now(timezone.utc) - timedelta(hours=2)))

        assert cache.get(URL) is None
        # Stale entries are not evicted
        with open(cache.cache_file, "r", encoding="utf-8") as f:
            assert URL in json.load(f)

    def test_default_lifetime_is_one_day(self, tmp_path):
        cache = FileResponseCache(str(tmp_path))
        cache.put(URL, _entry(stored_at=datetime.now(timezone.utc) - timedelta(hours=23)))
        assert cache.get(URL) is not None

        cache.put(URL, _entry(stored_at=datetime.now(timezone.utc) - timedelta(hours=25)))
        assert cache.get(URL) is None

    def test_put_replaces_previous_value(self, tmp_path):
        cache = FileResponseCache(str(tmp_path))
        cache.put(URL, _entry(body="old"))
        cache.put(URL, _entry(body="new"))
        assert cache.get(URL).body == "new"

    def test_scalar_header_values_are_normalized(self, tmp_path):
        cache = FileResponseCache(str(tmp_path))
        with open(cache.cache_file, "w", encoding="utf-8") as f:
            json.dump(
                {
                    URL: {
                        "headers": {"Content-Type": "application/json"},
                        "body": "{}",
                        "cached_at": datetime.now(timezone.utc).isoformat(),
                    }
                },
                f,
            )
        assert cache.get(URL).headers == {"Content-Type": ["application/json"]}

    @pytest.mark.parametrize(
        "raw",
        [
            "not-a-dict",
            {"headers": {}, "body": "{}"},
            {"headers": [], "body": "{}", "cached_at": "2025-01-01T00:00:00+00:00"},
            {"headers": {}, "body": 3, "cached_at": "2025-01-01T00:00:00+00:00"},
        ],
    )
    def test_malformed_entries_are_ignored(self, tmp_path, raw):
        cache = FileResponseCache(str(tmp_path))
        with open(cache.cache_file, "w", encoding="utf-8") as f:
            json.dump({URL: raw}, f)
        assert cache.get(URL) is None

    def test_corrupt_file_is_ignored(self, tmp_path):
        cache = FileResponseCache(str(tmp_path))
        with open(cache.cache_file, "w", encoding="utf-8") as f:
            f.write("{not json")

        assert cache.get(URL) is None
        cache.put(URL, _entry())
        assert cache.get(URL) is not None

    def test_clear_removes_file(self, tmp_path):
        cache = FileResponseCache(str(tmp_path))
        cache.put(URL, _entry())

        assert cache.clear() is True
        assert not os.path.exists(cache.cache_file)
        assert cache.get(URL) is None

    def test_clear_without_file(self, tmp_path):
        assert FileResponseCache(str(tmp_path)).clear() is True

    def test_clear_reports_os_error(self, tmp_path, mocker):
        cache = FileResponseCache(str(tmp_path))
        cache.put(URL, _entry())
        mocker.patch("ghupgrade.upgrade.cache.os.remove", side_effect=OSError("busy"))

        assert cache.clear() is False

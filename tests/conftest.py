import json
import time
from typing import Any, Dict, Optional
from unittest.mock import Mock

import platformdirs
import pytest
import requests
from requests.structures import CaseInsensitiveDict

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the markers used to group the test suite.

    Parameters:
        config: pytest.Config
            The pytest configuration object.
    """
    for marker, description in (
        ("unit", "fast isolated tests"),
        ("core_downloads", "release resolution and download pipeline"),
        ("infrastructure", "caching, files and logging"),
        ("configuration", "configuration loading and validation"),
        ("user_interface", "command line interface"),
        ("integration", "multi-component flows with mocked HTTP"),
    ):
        config.addinivalue_line("markers", f"{marker}: {description}")


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point every platformdirs/XDG location at a per-test temporary directory.

    Also clears GITHUB_TOKEN and the ghupgrade environment switches so tests
    never pick up the developer's real credentials or settings.
    """
    base = tmp_path_factory.mktemp("ghupgrade")
    cache_dir = base / "cache"
    state_dir = base / "state"
    config_dir = base / "config"
    data_dir = base / "data"

    for path in (cache_dir, state_dir, config_dir, data_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GHUPGRADE_DEBUG_MODE", raising=False)

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_state_dir", lambda *_args, **_kwargs: str(state_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_data_dir", lambda *_args, **_kwargs: str(data_dir)
    )

    import ghupgrade.config as config_module

    monkeypatch.setattr(config_module, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(
        config_module, "CONFIG_FILE", str(config_dir / "ghupgrade.yaml")
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.head = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """Make time.sleep instant for all tests to prevent delays."""
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


# =============================================================================
# HTTP helpers
# =============================================================================


def _make_response(
    status_code: int = 200,
    body: Any = b"",
    headers: Optional[Dict[str, str]] = None,
) -> Mock:
    """
    Build a mock requests.Response.

    `body` may be bytes, str, or a JSON-serializable object.
    """
    if isinstance(body, (dict, list)):
        content = json.dumps(body).encode("utf-8")
    elif isinstance(body, str):
        content = body.encode("utf-8")
    else:
        content = body
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.content = content
    response.text = content.decode("utf-8", errors="replace")
    response.headers = CaseInsensitiveDict(headers or {})
    return response


@pytest.fixture
def release_payload():
    """A latest-release payload with a matching module asset and a changelog."""
    return {
        "tag_name": "v1.4.0",
        "body": "## Changes\r\n- Fix login\r\n**Full Changelog**: https://github.com/acme/blog/compare/v1.3.0...v1.4.0\r\n- Add export",
        "assets": [
            {
                "name": "blog-docs.zip",
                "content_type": "application/zip",
                "browser_download_url": "https://github.com/acme/blog/releases/download/v1.4.0/blog-docs.zip",
                "url": "https://api.github.com/repos/acme/blog/releases/assets/2",
            },
            {
                "name": "blog.zip",
                "content_type": "application/zip",
                "browser_download_url": "https://github.com/acme/blog/releases/download/v1.4.0/blog.zip",
                "url": "https://api.github.com/repos/acme/blog/releases/assets/1",
            },
        ],
    }


@pytest.fixture
def mock_session(mocker):
    """A MagicMock standing in for requests.Session."""
    session = mocker.MagicMock(spec=requests.Session)
    return session


@pytest.fixture
def make_response():
    """Factory fixture for mock requests.Response objects (see `_make_response`)."""
    return _make_response

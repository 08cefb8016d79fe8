"""Shared pytest fixtures and configuration

This file contains fixtures that can be used across all test files.
Pytest automatically discovers this file and makes fixtures available.
"""

import tempfile
from pathlib import Path

import pytest

from socials.errors import LocalIOError
from socials.token_store import MemoryTokenStore
from socials.types import MediaAsset

# ==================== Fake HTTP ====================


class FakeHttp:
    """Stand-in for utils.http.HttpClient with exact (method, url) routing.

    Responses queued with on() are returned in order; the last one repeats.
    A queued exception instance is raised instead of returned.
    Every call is recorded in `calls` as (method, url, kwargs).
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, method, url, *responses):
        self.routes.setdefault((method.upper(), url), []).extend(responses)
        return self

    def calls_to(self, method, url):
        return [kw for m, u, kw in self.calls if m == method.upper() and u == url]

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        queue = self.routes.get((method, url))
        if not queue:
            raise AssertionError(f"Unexpected {method} {url}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, BaseException):
            raise response
        return response

    def get_json(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post_json(self, url, **kwargs):
        return self._next("POST", url, kwargs)

    def put(self, url, **kwargs):
        return self._next("PUT", url, kwargs)


@pytest.fixture
def fake_http():
    """Routing fake for the HTTP layer"""
    return FakeHttp()


@pytest.fixture
def memory_store():
    """Empty in-memory token store"""
    return MemoryTokenStore()


@pytest.fixture
def broken_store():
    """Factory for a memory store whose writes to `fail_key` raise LocalIOError"""

    class _BrokenStore(MemoryTokenStore):
        def __init__(self, fail_key, initial=None):
            super().__init__(initial)
            self.fail_key = fail_key

        def write(self, key, value):
            if key == self.fail_key:
                raise LocalIOError(f"disk full writing {key}")
            super().write(key, value)

    return _BrokenStore


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping; call `sleeps.sleep(secs)`."""

    class _Sleeps(list):
        def sleep(self, secs):
            self.append(secs)

    return _Sleeps()


# ==================== File System Fixtures ====================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_asset(temp_dir):
    """Factory fixture that writes a file of `size` bytes and wraps it in a MediaAsset"""

    def _make(name="photo.jpg", size=1024, mime_type=None):
        path = temp_dir / name
        pattern = bytes(range(256))
        data = (pattern * (size // 256 + 1))[:size]
        path.write_bytes(data)
        return MediaAsset.from_path(path, mime_type)

    return _make


@pytest.fixture
def image_asset(make_asset):
    """Small JPEG asset"""
    return make_asset("photo.jpg", 2048)


@pytest.fixture
def video_asset(make_asset):
    """Small MP4 asset (25 bytes, so a 10 byte chunk size gives three chunks)"""
    return make_asset("clip.mp4", 25)


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("markers", "api: mark test as requiring API access")

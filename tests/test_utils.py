"""
Tests for socials.utils

- Byte range planning for chunked uploads
- Caption truncation per platform
- The publish / exchange boundaries that turn exceptions into results
"""

import pytest
import requests

from socials.errors import AuthNotConfigured, InvalidState, LocalIOError, RemoteAPIError, UnsupportedMediaType
from socials.types import PublishOutcome
from socials.utils import (
    chunk_count,
    exchange_boundary,
    iter_chunk_ranges,
    publish_boundary,
    require_field,
    truncate_caption,
)


class TestChunkRanges:
    """Inclusive ranges that tile the whole file"""

    def test_exact_multiple(self):
        assert list(iter_chunk_ranges(30, 10)) == [(0, 9), (10, 19), (20, 29)]

    def test_short_last_chunk(self):
        assert list(iter_chunk_ranges(25, 10)) == [(0, 9), (10, 19), (20, 24)]

    def test_smaller_than_one_chunk(self):
        assert list(iter_chunk_ranges(5, 10_000_000)) == [(0, 4)]

    def test_ranges_are_contiguous_and_cover_everything(self):
        total = 25_000_001
        ranges = list(iter_chunk_ranges(total, 10_000_000))

        assert ranges[0][0] == 0
        assert ranges[-1][1] == total - 1
        for (_, prev_end), (start, _) in zip(ranges, ranges[1:]):
            assert start == prev_end + 1
        assert len(ranges) == chunk_count(total, 10_000_000) == 3

    @pytest.mark.parametrize("total,chunk", [(0, 10), (-1, 10), (10, 0)])
    def test_invalid_sizes(self, total, chunk):
        with pytest.raises(ValueError):
            list(iter_chunk_ranges(total, chunk))


class TestTruncateCaption:
    def test_tiktok_limit(self):
        assert truncate_caption("tiktok", "x" * 200) == "x" * 150

    def test_instagram_limit(self):
        assert len(truncate_caption("instagram", "y" * 5000)) == 2200

    def test_short_caption_untouched(self):
        assert truncate_caption("facebook", "hello") == "hello"

    def test_none_becomes_empty(self):
        assert truncate_caption("tiktok", None) == ""

    def test_unknown_platform_has_no_limit(self):
        assert truncate_caption("myspace", "z" * 10_000) == "z" * 10_000


class TestRequireField:
    def test_returns_value(self):
        assert require_field({"id": "42"}, "id", "step") == "42"

    def test_missing_raises_remote_error(self):
        with pytest.raises(RemoteAPIError) as exc:
            require_field({"other": 1}, "id", "Facebook photo upload")
        assert "Facebook photo upload" in str(exc.value)


class _Client:
    platform = "facebook"

    def __init__(self, exc=None):
        self.exc = exc

    @publish_boundary
    def publish(self):
        if self.exc:
            raise self.exc
        return PublishOutcome(platform=self.platform, success=True, message="ok", post_id="1")

    @exchange_boundary
    def exchange_code_for_token(self, code, state=None):
        if self.exc:
            raise self.exc


class TestPublishBoundary:
    """publish() never raises"""

    def test_passes_through_success(self):
        outcome = _Client().publish()
        assert outcome.success is True
        assert outcome.post_id == "1"

    @pytest.mark.parametrize(
        "exc,code",
        [
            (UnsupportedMediaType("no"), "UnsupportedMediaType"),
            (RemoteAPIError("bad", status_code=400), "RemoteAPIError"),
            (requests.ConnectionError("down"), "RemoteAPIError"),
            (OSError("gone"), "LocalIOError"),
            (RuntimeError("boom"), "RuntimeError"),
        ],
    )
    def test_errors_become_failure_outcomes(self, exc, code):
        outcome = _Client(exc).publish()
        assert outcome.success is False
        assert outcome.platform == "facebook"
        assert outcome.error == code


class TestExchangeBoundary:
    def test_success(self):
        result = _Client().exchange_code_for_token("code")
        assert result.success is True
        assert result.error is None

    def test_invalid_state_keeps_code(self):
        result = _Client(InvalidState("Invalid state parameter")).exchange_code_for_token("code")
        assert result.success is False
        assert result.error == "InvalidState"

    def test_not_configured_keeps_code(self):
        result = _Client(AuthNotConfigured("missing")).exchange_code_for_token("code")
        assert result.error == "AuthNotConfigured"

    @pytest.mark.parametrize(
        "exc",
        [RemoteAPIError("nope"), LocalIOError("disk"), requests.Timeout("slow"), KeyError("access_token")],
    )
    def test_everything_else_is_exchange_failure(self, exc):
        result = _Client(exc).exchange_code_for_token("code")
        assert result.success is False
        assert result.error == "AuthExchangeFailed"

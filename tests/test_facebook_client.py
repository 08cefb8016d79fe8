"""
Tests for the Facebook Page client

- Token verification and OAuth exchange (page token selection + persistence)
- Photo publish (single multipart POST)
- Video publish (start -> server-driven chunk transfer -> finish)
"""

import pytest

from socials.errors import AuthNotConfigured, RemoteAPIError
from socials.facebook_client import (
    GRAPH_BASE,
    GRAPH_VIDEO_BASE,
    PAGE_ID_KEY,
    TOKEN_KEY,
    FacebookClient,
    FacebookConfig,
)
from socials.token_store import MemoryTokenStore


def _client(fake_http, store=None, **cfg):
    config = FacebookConfig(app_id="app", app_secret="secret", **cfg)
    return FacebookClient(config, store if store is not None else MemoryTokenStore(), fake_http)


def _connected(fake_http):
    store = MemoryTokenStore({TOKEN_KEY: "page-token", PAGE_ID_KEY: "111"})
    return _client(fake_http, store), store


class TestFacebookAuth:
    def test_not_authenticated_without_token(self, fake_http):
        assert _client(fake_http).is_authenticated() is False
        assert fake_http.calls == []

    def test_authenticated_when_me_answers(self, fake_http):
        fake_http.on("GET", f"{GRAPH_BASE}/me", {"id": "999", "name": "Page"})
        client, _ = _connected(fake_http)
        assert client.is_authenticated() is True
        assert fake_http.calls_to("GET", f"{GRAPH_BASE}/me")[0]["params"]["access_token"] == "page-token"

    def test_rejected_token_is_not_authenticated(self, fake_http):
        fake_http.on("GET", f"{GRAPH_BASE}/me", RemoteAPIError("Invalid OAuth access token", status_code=401))
        client, _ = _connected(fake_http)
        assert client.is_authenticated() is False

    def test_authorization_url(self, fake_http):
        url = _client(fake_http).get_authorization_url()
        assert url.startswith("https://www.facebook.com/")
        assert "client_id=app" in url
        assert "pages_manage_posts" in url

    def test_authorization_url_requires_app_id(self, fake_http):
        client = FacebookClient(FacebookConfig(), MemoryTokenStore(), fake_http)
        with pytest.raises(AuthNotConfigured):
            client.get_authorization_url()

    def test_exchange_stores_page_token_and_id(self, fake_http):
        fake_http.on("GET", f"{GRAPH_BASE}/oauth/access_token", {"access_token": "user-token"})
        fake_http.on(
            "GET",
            f"{GRAPH_BASE}/me/accounts",
            {"data": [{"id": "111", "name": "My Page", "access_token": "page-token"}]},
        )
        store = MemoryTokenStore()
        client = _client(fake_http, store)

        result = client.exchange_code_for_token("the-code")

        assert result.success is True
        assert store.values == {TOKEN_KEY: "page-token", PAGE_ID_KEY: "111"}
        assert fake_http.calls_to("GET", f"{GRAPH_BASE}/oauth/access_token")[0]["params"]["code"] == "the-code"

    def test_exchange_picks_configured_page(self, fake_http):
        fake_http.on("GET", f"{GRAPH_BASE}/oauth/access_token", {"access_token": "user-token"})
        fake_http.on(
            "GET",
            f"{GRAPH_BASE}/me/accounts",
            {
                "data": [
                    {"id": "111", "access_token": "first"},
                    {"id": "222", "access_token": "second"},
                ]
            },
        )
        store = MemoryTokenStore()
        client = _client(fake_http, store, page_id="222")

        assert client.exchange_code_for_token("c").success is True
        assert store.values[TOKEN_KEY] == "second"

    def test_exchange_failure_persists_nothing(self, fake_http):
        fake_http.on("GET", f"{GRAPH_BASE}/oauth/access_token", {"access_token": "user-token"})
        fake_http.on("GET", f"{GRAPH_BASE}/me/accounts", RemoteAPIError("boom", status_code=500))
        store = MemoryTokenStore()

        result = _client(fake_http, store).exchange_code_for_token("c")

        assert result.success is False
        assert result.error == "AuthExchangeFailed"
        assert store.values == {}

    def _page_exchange(self, fake_http, pages):
        fake_http.on("GET", f"{GRAPH_BASE}/oauth/access_token", {"access_token": "user-token"})
        fake_http.on("GET", f"{GRAPH_BASE}/me/accounts", {"data": pages})

    def test_exchange_page_id_write_failure_keeps_old_token(self, fake_http, broken_store):
        self._page_exchange(fake_http, [{"id": "111", "access_token": "page-token"}])
        store = broken_store(PAGE_ID_KEY, {TOKEN_KEY: "old-token", PAGE_ID_KEY: "old-page"})

        result = _client(fake_http, store).exchange_code_for_token("c")

        assert result.success is False
        assert result.error == "AuthExchangeFailed"
        assert store.values == {TOKEN_KEY: "old-token", PAGE_ID_KEY: "old-page"}

    def test_exchange_token_write_failure_restores_page_id(self, fake_http, broken_store):
        self._page_exchange(fake_http, [{"id": "111", "access_token": "page-token"}])
        store = broken_store(TOKEN_KEY, {TOKEN_KEY: "old-token", PAGE_ID_KEY: "old-page"})

        result = _client(fake_http, store).exchange_code_for_token("c")

        assert result.error == "AuthExchangeFailed"
        assert store.values == {TOKEN_KEY: "old-token", PAGE_ID_KEY: "old-page"}

    def test_exchange_without_pages_drops_stale_page_id(self, fake_http):
        self._page_exchange(fake_http, [])
        store = MemoryTokenStore({TOKEN_KEY: "old-token", PAGE_ID_KEY: "old-page"})

        assert _client(fake_http, store).exchange_code_for_token("c").success is True
        assert store.values == {TOKEN_KEY: "user-token"}

    def test_exchange_without_pages_keeps_configured_page_id(self, fake_http):
        self._page_exchange(fake_http, [])
        store = MemoryTokenStore({PAGE_ID_KEY: "old-page"})
        client = _client(fake_http, store, page_id="222")

        assert client.exchange_code_for_token("c").success is True
        assert store.values == {TOKEN_KEY: "user-token", PAGE_ID_KEY: "old-page"}

    def test_exchange_unconfigured(self, fake_http):
        client = FacebookClient(FacebookConfig(app_id="app"), MemoryTokenStore(), fake_http)
        result = client.exchange_code_for_token("c")
        assert result.error == "AuthNotConfigured"
        assert fake_http.calls == []


class TestFacebookPhoto:
    def test_photo_publish(self, fake_http, image_asset):
        fake_http.on("POST", f"{GRAPH_BASE}/111/photos", {"id": "111_555", "post_id": "111_555"})
        client, _ = _connected(fake_http)

        outcome = client.publish(image_asset, "Hello world")

        assert outcome.success is True
        assert outcome.post_id == "111_555"
        assert outcome.url == "https://www.facebook.com/111_555"
        call = fake_http.calls_to("POST", f"{GRAPH_BASE}/111/photos")[0]
        assert call["data"]["message"] == "Hello world"
        assert call["data"]["access_token"] == "page-token"
        assert "source" in call["files"]

    def test_long_caption_truncated(self, fake_http, image_asset):
        fake_http.on("POST", f"{GRAPH_BASE}/111/photos", {"id": "1"})
        client, _ = _connected(fake_http)

        client.publish(image_asset, "a" * 70000)

        call = fake_http.calls_to("POST", f"{GRAPH_BASE}/111/photos")[0]
        assert len(call["data"]["message"]) == 63206

    def test_not_connected(self, fake_http, image_asset):
        outcome = _client(fake_http).publish(image_asset, "hi")
        assert outcome.success is False
        assert outcome.error == "NotAuthenticated"
        assert fake_http.calls == []

    def test_missing_page_id(self, fake_http, image_asset):
        client = _client(fake_http, MemoryTokenStore({TOKEN_KEY: "tok"}))
        outcome = client.publish(image_asset, "hi")
        assert outcome.error == "AuthNotConfigured"

    def test_api_error_becomes_failure(self, fake_http, image_asset):
        fake_http.on("POST", f"{GRAPH_BASE}/111/photos", RemoteAPIError("(#200) Permissions error", status_code=403))
        client, _ = _connected(fake_http)

        outcome = client.publish(image_asset, "hi")

        assert outcome.success is False
        assert outcome.error == "RemoteAPIError"
        assert "Permissions" in outcome.message


class TestFacebookVideo:
    def test_resumable_upload_follows_server_offsets(self, fake_http, video_asset):
        videos = f"{GRAPH_BASE}/111/videos"
        transfer = f"{GRAPH_VIDEO_BASE}/111/videos"
        fake_http.on(
            "POST",
            videos,
            {"upload_session_id": "sess", "video_id": "vid", "start_offset": "0", "end_offset": "10"},
            {"success": True},
        )
        fake_http.on(
            "POST",
            transfer,
            {"start_offset": "10", "end_offset": "25"},
            {"start_offset": "25", "end_offset": "25"},
        )
        client, _ = _connected(fake_http)

        outcome = client.publish(video_asset, "My clip")

        assert outcome.success is True
        assert outcome.post_id == "vid"
        assert outcome.url == "https://www.facebook.com/vid"

        phases = [c["data"]["upload_phase"] for c in fake_http.calls_to("POST", videos)]
        assert phases == ["start", "finish"]

        transfers = fake_http.calls_to("POST", transfer)
        assert [t["data"]["start_offset"] for t in transfers] == ["0", "10"]
        sent = b"".join(t["files"]["video_file_chunk"][1] for t in transfers)
        assert sent == video_asset.path.read_bytes()

        finish = fake_http.calls_to("POST", videos)[1]["data"]
        assert finish["description"] == "My clip"
        assert finish["upload_session_id"] == "sess"

    def test_transfer_without_progress_aborts(self, fake_http, video_asset):
        videos = f"{GRAPH_BASE}/111/videos"
        transfer = f"{GRAPH_VIDEO_BASE}/111/videos"
        fake_http.on(
            "POST",
            videos,
            {"upload_session_id": "sess", "video_id": "vid", "start_offset": "0", "end_offset": "10"},
        )
        fake_http.on("POST", transfer, {"start_offset": "0", "end_offset": "10"})
        client, _ = _connected(fake_http)

        outcome = client.publish(video_asset, "clip")

        assert outcome.success is False
        assert outcome.error == "RemoteAPIError"
        assert len(fake_http.calls_to("POST", transfer)) == 1
        assert len(fake_http.calls_to("POST", videos)) == 1  # no finish

# socials/tiktok_client.py
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlencode

import requests

from socials.errors import (
    AuthNotConfigured,
    InvalidState,
    LocalIOError,
    NotAuthenticated,
    PublishTimeout,
    RemoteAPIError,
    SocialAgentError,
    UnsupportedMediaType,
)
from socials.platforms import TIKTOK
from socials.token_store import CredentialSlot, TokenStore
from socials.types import MediaAsset, PublishOutcome
from socials.utils import (
    chunk_count,
    exchange_boundary,
    iter_chunk_ranges,
    publish_boundary,
    require_field,
    truncate_caption,
)
from utils.http import HttpClient

from .base import PlatformClient

OPEN_API_BASE = "https://open.tiktokapis.com"
AUTHORIZE_URL = "https://www.tiktok.com/v2/auth/authorize/"
TOKEN_URL = f"{OPEN_API_BASE}/v2/oauth/token/"
USER_INFO_URL = f"{OPEN_API_BASE}/v2/user/info/"
VIDEO_INIT_URL = f"{OPEN_API_BASE}/v2/post/publish/video/init/"
STATUS_FETCH_URL = f"{OPEN_API_BASE}/v2/post/publish/status/fetch/"

SCOPES = ["video.upload", "user.info.basic"]

TOKEN_KEY = "tiktok_token"
STATE_KEY = "tiktok_state"

DEFAULT_CHUNK_SIZE = 10_000_000  # 10MB

# Anything outside these two sets is terminal failure.
PENDING_STATUSES = {"PROCESSING", "PROCESSING_UPLOAD", "PROCESSING_DOWNLOAD"}
SUCCESS_STATUSES = {"PUBLISHED", "PUBLISH_COMPLETE"}

logger = logging.getLogger(__name__)


@dataclass
class TikTokConfig:
    client_key: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: str = "http://localhost:3000/api/auth/tiktok/callback"
    access_token: Optional[str] = None
    username: Optional[str] = None  # only used to build the public post URL
    privacy_level: str = "PUBLIC_TO_EVERYONE"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    poll_interval: float = 3.0
    poll_max_attempts: int = 30


class TikTokClient(PlatformClient):
    """TikTok Content Posting API adapter (direct post, video only).

    Flow: init (declares size + chunking) -> sequential ranged PUTs to the
    returned upload_url -> poll publish status until PUBLISHED.

    The OAuth flow carries a CSRF nonce: get_authorization_url() mints and stores
    it, exchange_code_for_token() accepts only that exact value.
    """

    platform = TIKTOK

    def __init__(
        self,
        config: TikTokConfig,
        store: TokenStore,
        http: Optional[HttpClient] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.store = store
        self.http = http or HttpClient()
        self._sleep = sleep
        self._token = CredentialSlot(store, TOKEN_KEY, seed=config.access_token)

    # --------------------------
    # Helpers
    # --------------------------
    @staticmethod
    def _raise_if_error(payload: Dict[str, Any], prefix: str) -> None:
        """TikTok reports API errors in the body, even on HTTP 200: success is error.code == "ok"."""
        err = payload.get("error")
        if isinstance(err, dict):
            code = err.get("code")
            if code not in (None, "ok", 0, "0"):
                raise RemoteAPIError(f"{prefix}: {err.get('message') or code}", payload=payload)
        elif isinstance(err, str) and err:
            raise RemoteAPIError(f"{prefix}: {payload.get('error_description') or err}", payload=payload)

    @staticmethod
    def _headers_bearer(access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json; charset=UTF-8",
        }

    # --------------------------
    # Auth lifecycle
    # --------------------------
    def is_authenticated(self) -> bool:
        try:
            token = self._token.get()
        except LocalIOError:
            logger.warning("TikTok: token file unreadable; treating as not authenticated")
            return False
        if not token:
            return False

        try:
            res = self.http.get_json(
                USER_INFO_URL,
                params={"fields": "open_id,union_id,avatar_url,display_name"},
                headers={"Authorization": f"Bearer {token}"},
            )
            self._raise_if_error(res, "TikTok user info")
        except (SocialAgentError, requests.RequestException) as e:
            logger.info("TikTok: token verification failed: %s", e)
            return False
        return bool(res.get("data"))

    def get_authorization_url(self) -> str:
        if not self.config.client_key or not self.config.redirect_uri:
            raise AuthNotConfigured("TikTok client key / redirect URI is not configured")

        # A new nonce replaces any outstanding one.
        state = secrets.token_urlsafe(16)
        self.store.write(STATE_KEY, state)

        params = {
            "client_key": self.config.client_key,
            "scope": ",".join(SCOPES),
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "state": state,
        }
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    @exchange_boundary
    def exchange_code_for_token(self, code: str, state: Optional[str] = None) -> None:
        expected = self.store.read(STATE_KEY)
        if not expected or state != expected:
            raise InvalidState("Invalid state parameter")

        if not self.config.client_key or not self.config.client_secret:
            raise AuthNotConfigured("TikTok client key / secret is not configured")

        logger.info("TikTok: exchanging authorization code")
        res = self.http.post_json(
            TOKEN_URL,
            data={
                "client_key": self.config.client_key,
                "client_secret": self.config.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.config.redirect_uri,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        self._raise_if_error(res, "TikTok token exchange failed")

        # v2 answers at the top level; older responses nest under "data".
        token = res.get("access_token") or (res.get("data") or {}).get("access_token")
        if not token:
            raise RemoteAPIError("TikTok token exchange: response is missing 'access_token'", payload=res)

        self._token.set(token)
        self.store.delete(STATE_KEY)

    # --------------------------
    # Publishing
    # --------------------------
    @publish_boundary
    def publish(self, asset: MediaAsset, caption: str) -> PublishOutcome:
        if not asset.is_video:
            raise UnsupportedMediaType("TikTok only supports video uploads")

        token = self._token.get()
        if not token:
            raise NotAuthenticated("Not connected to TikTok. Please connect your account first.")
        if asset.size <= 0:
            raise LocalIOError(f"{asset.name} is empty")

        title = truncate_caption(self.platform, caption)

        publish_id, upload_url = self._init_upload(asset, title, token)
        self._upload_chunks(asset, upload_url)
        status_data = self._wait_for_publish(publish_id, token)

        return PublishOutcome(
            platform=self.platform,
            success=True,
            message="Video uploaded to TikTok",
            post_id=publish_id,
            url=self._post_url(publish_id, status_data),
        )

    def _post_url(self, publish_id: str, status_data: Dict[str, Any]) -> Optional[str]:
        if not self.config.username:
            return None
        # Field name is spelled this way by the API.
        post_ids = status_data.get("publicaly_available_post_id") or []
        video_id = post_ids[0] if post_ids else publish_id
        return f"https://www.tiktok.com/@{self.config.username}/video/{video_id}"

    def _init_upload(self, asset: MediaAsset, title: str, token: str) -> Tuple[str, str]:
        chunk_size = self.config.chunk_size
        total_chunks = chunk_count(asset.size, chunk_size)

        payload = {
            "post_info": {
                "title": title,
                "privacy_level": self.config.privacy_level,
                "disable_duet": False,
                "disable_comment": False,
                "disable_stitch": False,
                "video_cover_timestamp_ms": 1000,
            },
            "source_info": {
                "source": "FILE_UPLOAD",
                "video_size": asset.size,
                "chunk_size": chunk_size,
                "total_chunk_count": total_chunks,
            },
        }

        logger.info("TikTok: init upload (%d bytes, %d chunk(s) of %d)", asset.size, total_chunks, chunk_size)
        res = self.http.post_json(VIDEO_INIT_URL, json=payload, headers=self._headers_bearer(token))
        self._raise_if_error(res, "TikTok video init failed")

        data = res.get("data") or {}
        publish_id = str(require_field(data, "publish_id", "TikTok video init"))
        upload_url = str(require_field(data, "upload_url", "TikTok video init"))
        return publish_id, upload_url

    def _upload_chunks(self, asset: MediaAsset, upload_url: str) -> None:
        total = asset.size
        ranges = list(iter_chunk_ranges(total, self.config.chunk_size))
        content_type = asset.mime_type if (asset.mime_type or "").startswith("video/") else "video/mp4"

        with asset.path.open("rb") as fh:
            for index, (start, end) in enumerate(ranges, start=1):
                expected = end - start + 1
                chunk = fh.read(expected)
                if len(chunk) != expected:
                    raise LocalIOError(f"{asset.name} changed size during upload")

                logger.info("TikTok: uploading chunk %d/%d (bytes %d-%d/%d)", index, len(ranges), start, end, total)
                self.http.put(
                    upload_url,
                    data=chunk,
                    headers={
                        "Content-Type": content_type,
                        "Content-Length": str(expected),
                        "Content-Range": f"bytes {start}-{end}/{total}",
                    },
                )

    def _fetch_status(self, publish_id: str, token: str) -> Dict[str, Any]:
        res = self.http.post_json(
            STATUS_FETCH_URL,
            json={"publish_id": publish_id},
            headers=self._headers_bearer(token),
        )
        self._raise_if_error(res, "TikTok status fetch failed")
        return res.get("data") or {}

    def _wait_for_publish(self, publish_id: str, token: str) -> Dict[str, Any]:
        """Fetch status once, then poll while it is a processing state, at most poll_max_attempts more times."""
        data = self._fetch_status(publish_id, token)
        status = str(data.get("status") or "UNKNOWN")
        attempts = 0

        while status in PENDING_STATUSES and attempts < self.config.poll_max_attempts:
            self._sleep(self.config.poll_interval)
            data = self._fetch_status(publish_id, token)
            status = str(data.get("status") or "UNKNOWN")
            attempts += 1
            logger.info(
                "TikTok: publish %s status=%s (check %d/%d)",
                publish_id,
                status,
                attempts,
                self.config.poll_max_attempts,
            )

        if status in SUCCESS_STATUSES:
            return data
        if status in PENDING_STATUSES:
            raise PublishTimeout(
                f"TikTok upload status: {status} (gave up after {attempts} checks)",
                last_status=status,
            )

        reason = data.get("fail_reason")
        raise RemoteAPIError(f"TikTok upload status: {status}" + (f" ({reason})" if reason else ""), payload=data)

# socials/facebook_client.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlencode

import requests

from socials.errors import (
    AuthExchangeFailed,
    AuthNotConfigured,
    LocalIOError,
    NotAuthenticated,
    RemoteAPIError,
    SocialAgentError,
)
from socials.platforms import FACEBOOK
from socials.token_store import CredentialSlot, TokenStore, save_together
from socials.types import MediaAsset, PublishOutcome
from socials.utils import exchange_boundary, publish_boundary, require_field, truncate_caption
from utils.http import UPLOAD_TIMEOUT, HttpClient

from .base import PlatformClient

GRAPH_VERSION = "v18.0"
GRAPH_BASE = f"https://graph.facebook.com/{GRAPH_VERSION}"
GRAPH_VIDEO_BASE = f"https://graph-video.facebook.com/{GRAPH_VERSION}"
OAUTH_DIALOG_URL = f"https://www.facebook.com/{GRAPH_VERSION}/dialog/oauth"

SCOPES = ["pages_manage_posts", "pages_read_engagement", "pages_show_list"]

TOKEN_KEY = "facebook_token"
PAGE_ID_KEY = "facebook_page_id"

logger = logging.getLogger(__name__)


@dataclass
class FacebookConfig:
    app_id: Optional[str] = None
    app_secret: Optional[str] = None
    redirect_uri: str = "http://localhost:3000/api/auth/facebook/callback"
    page_id: Optional[str] = None  # None -> first managed page at auth time
    access_token: Optional[str] = None  # optional pre-issued page token


def post_url(post_id: str) -> str:
    return f"https://www.facebook.com/{post_id}"


class FacebookClient(PlatformClient):
    """Facebook Page adapter using the Graph API.

    - Photos: one multipart POST to /{page}/photos.
    - Videos: resumable upload (start -> chunked transfer -> finish) on /{page}/videos.
    - Auth: the user token is swapped for the managed page's token, which is what gets stored.
    """

    platform = FACEBOOK

    def __init__(self, config: FacebookConfig, store: TokenStore, http: Optional[HttpClient] = None) -> None:
        self.config = config
        self.store = store
        self.http = http or HttpClient()
        self._token = CredentialSlot(store, TOKEN_KEY, seed=config.access_token)
        self._page_id = CredentialSlot(store, PAGE_ID_KEY, seed=config.page_id)

    # ---------------------------
    # Auth lifecycle
    # ---------------------------
    def is_authenticated(self) -> bool:
        try:
            token = self._token.get()
        except LocalIOError:
            logger.warning("Facebook: token file unreadable; treating as not authenticated")
            return False
        if not token:
            return False

        try:
            me = self.http.get_json(f"{GRAPH_BASE}/me", params={"access_token": token})
        except (SocialAgentError, requests.RequestException) as e:
            logger.info("Facebook: token verification failed: %s", e)
            return False
        return bool(me.get("id"))

    def get_authorization_url(self) -> str:
        if not self.config.app_id or not self.config.redirect_uri:
            raise AuthNotConfigured("Facebook app id / redirect URI is not configured")

        params = {
            "client_id": self.config.app_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": ",".join(SCOPES),
            "response_type": "code",
        }
        return f"{OAUTH_DIALOG_URL}?{urlencode(params)}"

    @exchange_boundary
    def exchange_code_for_token(self, code: str, state: Optional[str] = None) -> None:
        if not self.config.app_id or not self.config.app_secret:
            raise AuthNotConfigured("Facebook app id / secret is not configured")

        logger.info("Facebook: exchanging authorization code")
        token_res = self.http.get_json(
            f"{GRAPH_BASE}/oauth/access_token",
            params={
                "client_id": self.config.app_id,
                "client_secret": self.config.app_secret,
                "redirect_uri": self.config.redirect_uri,
                "code": code,
            },
        )
        user_token = require_field(token_res, "access_token", "Facebook token exchange")

        pages_res = self.http.get_json(f"{GRAPH_BASE}/me/accounts", params={"access_token": user_token})
        pages: List[dict] = pages_res.get("data") or []

        token, page_id = user_token, None
        if pages:
            page = self._select_page(pages)
            token = require_field(page, "access_token", "Facebook page lookup")
            page_id = str(require_field(page, "id", "Facebook page lookup"))
            logger.info("Facebook: using page %s (%s)", page_id, page.get("name"))
        else:
            logger.warning("Facebook: account manages no pages; keeping the user token")

        # Nothing is written until every lookup above succeeded; the token goes last.
        if page_id:
            save_together((self._page_id, page_id), (self._token, token))
        elif self.config.page_id:
            save_together((self._token, token))
        else:
            # A page id from an earlier login does not belong to this token.
            save_together((self._page_id, None), (self._token, token))

    def _select_page(self, pages: List[dict]) -> dict:
        wanted = self.config.page_id
        if not wanted:
            return pages[0]
        for page in pages:
            if str(page.get("id")) == str(wanted):
                return page
        raise AuthExchangeFailed(f"Configured page {wanted} is not managed by this account")

    # ---------------------------
    # Publishing
    # ---------------------------
    @publish_boundary
    def publish(self, asset: MediaAsset, caption: str) -> PublishOutcome:
        token = self._token.get()
        if not token:
            raise NotAuthenticated("Not connected to Facebook. Please connect your account first.")
        page_id = self._page_id.get()
        if not page_id:
            raise AuthNotConfigured("Facebook page id not found. Please reconnect your Facebook account.")

        text = truncate_caption(self.platform, caption)
        if asset.is_video:
            return self._publish_video(asset, text, token, page_id)
        return self._publish_photo(asset, text, token, page_id)

    def _publish_photo(self, asset: MediaAsset, text: str, token: str, page_id: str) -> PublishOutcome:
        logger.info("Facebook: uploading photo %s (%d bytes) to page %s", asset.name, asset.size, page_id)
        with asset.path.open("rb") as fh:
            res = self.http.post_json(
                f"{GRAPH_BASE}/{page_id}/photos",
                data={"message": text, "access_token": token},
                files={"source": (asset.name, fh, asset.mime_type or "application/octet-stream")},
                timeout=UPLOAD_TIMEOUT,
            )
        post_id = str(require_field(res, "id", "Facebook photo upload"))
        return PublishOutcome(
            platform=self.platform,
            success=True,
            message="Photo uploaded to Facebook",
            post_id=post_id,
            url=post_url(post_id),
        )

    def _publish_video(self, asset: MediaAsset, text: str, token: str, page_id: str) -> PublishOutcome:
        videos_url = f"{GRAPH_BASE}/{page_id}/videos"

        # Phase 1: start
        logger.info("Facebook: starting video upload session (%d bytes)", asset.size)
        started = self.http.post_json(
            videos_url,
            data={"upload_phase": "start", "file_size": str(asset.size), "access_token": token},
        )
        session_id = str(require_field(started, "upload_session_id", "Facebook video start"))
        video_id = str(require_field(started, "video_id", "Facebook video start"))

        # Phase 2: transfer
        self._transfer(asset, token, page_id, session_id, started)

        # Phase 3: finish
        logger.info("Facebook: finishing upload session %s", session_id)
        finished = self.http.post_json(
            videos_url,
            data={
                "upload_phase": "finish",
                "upload_session_id": session_id,
                "description": text,
                "access_token": token,
            },
        )
        if finished.get("success") is False:
            raise RemoteAPIError("Facebook rejected the finished video upload", payload=finished)

        return PublishOutcome(
            platform=self.platform,
            success=True,
            message="Video uploaded to Facebook",
            post_id=video_id,
            url=post_url(video_id),
        )

    def _transfer(self, asset: MediaAsset, token: str, page_id: str, session_id: str, started: dict) -> None:
        """
        Send the byte windows the server asks for until start_offset == end_offset.

        Each response names the next window; one that does not move forward aborts
        the upload (the remote session is left to expire).
        """
        start_offset = int(started.get("start_offset", 0))
        end_offset = int(started.get("end_offset", asset.size))

        with asset.path.open("rb") as fh:
            while start_offset < end_offset:
                fh.seek(start_offset)
                chunk = fh.read(end_offset - start_offset)
                if not chunk:
                    raise LocalIOError(f"{asset.name} is shorter than the {end_offset} bytes requested")

                logger.info(
                    "Facebook: transferring bytes %d-%d of %d",
                    start_offset,
                    start_offset + len(chunk) - 1,
                    asset.size,
                )
                res = self.http.post_json(
                    f"{GRAPH_VIDEO_BASE}/{page_id}/videos",
                    data={
                        "upload_phase": "transfer",
                        "upload_session_id": session_id,
                        "start_offset": str(start_offset),
                        "access_token": token,
                    },
                    files={"video_file_chunk": (asset.name, chunk, "application/octet-stream")},
                    timeout=UPLOAD_TIMEOUT,
                )
                next_start = int(require_field(res, "start_offset", "Facebook video transfer"))
                next_end = int(require_field(res, "end_offset", "Facebook video transfer"))
                if next_start <= start_offset:
                    raise RemoteAPIError(
                        f"Facebook video transfer made no progress at offset {start_offset}",
                        payload=res,
                    )
                start_offset, end_offset = next_start, next_end

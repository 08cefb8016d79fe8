# socials/instagram_client.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlencode

import requests

from socials.errors import (
    AuthNotConfigured,
    LocalIOError,
    NotAuthenticated,
    PublishTimeout,
    RemoteAPIError,
    SocialAgentError,
)
from socials.platforms import INSTAGRAM
from socials.token_store import CredentialSlot, TokenStore, save_together
from socials.types import MediaAsset, PublishOutcome
from socials.utils import exchange_boundary, publish_boundary, require_field, truncate_caption
from utils.http import HttpClient
from utils.media_hosting import get_public_url

from .base import PlatformClient

GRAPH_VERSION = "v18.0"
GRAPH_BASE = f"https://graph.facebook.com/{GRAPH_VERSION}"
OAUTH_DIALOG_URL = f"https://www.facebook.com/{GRAPH_VERSION}/dialog/oauth"

SCOPES = ["instagram_basic", "instagram_content_publish", "pages_show_list"]

TOKEN_KEY = "instagram_token"
ACCOUNT_ID_KEY = "instagram_account_id"

logger = logging.getLogger(__name__)


@dataclass
class InstagramConfig:
    app_id: Optional[str] = None
    app_secret: Optional[str] = None
    redirect_uri: str = "http://localhost:3000/api/auth/instagram/callback"
    account_id: Optional[str] = None  # Instagram business account id
    access_token: Optional[str] = None
    image_publish_delay: float = 3.0  # fixed wait between image container and publish
    poll_interval: float = 2.0
    poll_max_attempts: int = 30
    video_media_type: str = "REELS"


def post_url(media_id: str) -> str:
    return f"https://www.instagram.com/p/{media_id}/"


class InstagramClient(PlatformClient):
    """Instagram business account adapter (Instagram Graph API via Facebook Login).

    Media is never sent as a body: the API pulls it from a public URL, so every
    publish first resolves one through `public_url`.

    - Images: container -> fixed delay -> media_publish (no status polling).
    - Videos: REELS container -> poll status_code until FINISHED -> media_publish.
    """

    platform = INSTAGRAM

    def __init__(
        self,
        config: InstagramConfig,
        store: TokenStore,
        http: Optional[HttpClient] = None,
        public_url: Optional[Callable[[Path], str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.store = store
        self.http = http or HttpClient()
        self.public_url = public_url or (lambda path: get_public_url({}, path))
        self._sleep = sleep
        self._token = CredentialSlot(store, TOKEN_KEY, seed=config.access_token)
        self._account_id = CredentialSlot(store, ACCOUNT_ID_KEY, seed=config.account_id)

    # ---------------------------
    # Auth lifecycle
    # ---------------------------
    def is_authenticated(self) -> bool:
        try:
            token = self._token.get()
            account_id = self._account_id.get()
        except LocalIOError:
            logger.warning("Instagram: token files unreadable; treating as not authenticated")
            return False
        if not token:
            return False

        # The business account node answers for page tokens; fall back to /me before it is known.
        node = account_id or "me"
        try:
            me = self.http.get_json(
                f"{GRAPH_BASE}/{node}",
                params={"fields": "id,username" if account_id else "id", "access_token": token},
            )
        except (SocialAgentError, requests.RequestException) as e:
            logger.info("Instagram: token verification failed: %s", e)
            return False
        return bool(me.get("id"))

    def get_authorization_url(self) -> str:
        if not self.config.app_id or not self.config.redirect_uri:
            raise AuthNotConfigured("Instagram app id / redirect URI is not configured")

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
            raise AuthNotConfigured("Instagram app id / secret is not configured")

        logger.info("Instagram: exchanging authorization code")
        short_res = self.http.get_json(
            f"{GRAPH_BASE}/oauth/access_token",
            params={
                "client_id": self.config.app_id,
                "client_secret": self.config.app_secret,
                "redirect_uri": self.config.redirect_uri,
                "code": code,
            },
        )
        short_token = require_field(short_res, "access_token", "Instagram token exchange")

        logger.info("Instagram: upgrading to a long-lived token")
        long_res = self.http.get_json(
            f"{GRAPH_BASE}/oauth/access_token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": self.config.app_id,
                "client_secret": self.config.app_secret,
                "fb_exchange_token": short_token,
            },
        )
        token = require_field(long_res, "access_token", "Instagram long-lived token exchange")

        account_id = self._resolve_business_account(token)

        # Nothing is written until every lookup above succeeded; the token goes last.
        if account_id:
            save_together((self._account_id, account_id), (self._token, token))
            return

        logger.warning("Instagram: no business account linked to the first page; publishing needs one")
        if self.config.account_id:
            save_together((self._token, token))
        else:
            # An account id from an earlier login does not belong to this token.
            save_together((self._account_id, None), (self._token, token))

    def _resolve_business_account(self, token: str) -> Optional[str]:
        pages = self.http.get_json(f"{GRAPH_BASE}/me/accounts", params={"access_token": token}).get("data") or []
        if not pages:
            return None

        page_id = require_field(pages[0], "id", "Instagram page lookup")
        page = self.http.get_json(
            f"{GRAPH_BASE}/{page_id}",
            params={"fields": "instagram_business_account", "access_token": token},
        )
        business = page.get("instagram_business_account") or {}
        account_id = business.get("id")
        if account_id:
            logger.info("Instagram: resolved business account %s via page %s", account_id, page_id)
            return str(account_id)
        return None

    # ---------------------------
    # Publishing
    # ---------------------------
    @publish_boundary
    def publish(self, asset: MediaAsset, caption: str) -> PublishOutcome:
        token = self._token.get()
        if not token:
            raise NotAuthenticated("Not connected to Instagram. Please connect your account first.")
        account_id = self._account_id.get()
        if not account_id:
            raise AuthNotConfigured("Instagram account id not found. Please reconnect your Instagram account.")

        text = truncate_caption(self.platform, caption)
        media_url = self.public_url(asset.path)
        logger.info("Instagram: media for %s will be fetched from %s", asset.name, media_url)

        if asset.is_video:
            return self._publish_video(media_url, text, token, account_id)
        return self._publish_image(media_url, text, token, account_id)

    def _publish_image(self, image_url: str, text: str, token: str, account_id: str) -> PublishOutcome:
        creation_id = self._create_container(
            account_id,
            {"image_url": image_url, "caption": text, "access_token": token},
        )

        # No status check on images: the delay is a heuristic, not a readiness guarantee.
        logger.info("Instagram: waiting %.1fs before publishing image container", self.config.image_publish_delay)
        self._sleep(self.config.image_publish_delay)

        media_id = self._publish_container(account_id, creation_id, token)
        return PublishOutcome(
            platform=self.platform,
            success=True,
            message="Photo uploaded to Instagram",
            post_id=media_id,
            url=post_url(media_id),
        )

    def _publish_video(self, video_url: str, text: str, token: str, account_id: str) -> PublishOutcome:
        creation_id = self._create_container(
            account_id,
            {
                "media_type": self.config.video_media_type,
                "video_url": video_url,
                "caption": text,
                "access_token": token,
            },
        )
        self._wait_for_container(creation_id, token)

        media_id = self._publish_container(account_id, creation_id, token)
        return PublishOutcome(
            platform=self.platform,
            success=True,
            message="Video uploaded to Instagram",
            post_id=media_id,
            url=post_url(media_id),
        )

    # ---------------------------
    # Low-level Graph endpoints
    # ---------------------------
    def _create_container(self, account_id: str, data: dict) -> str:
        logger.info("Instagram: creating %s container", data.get("media_type", "IMAGE"))
        res = self.http.post_json(f"{GRAPH_BASE}/{account_id}/media", data=data)
        return str(require_field(res, "id", "Instagram container create"))

    def _publish_container(self, account_id: str, creation_id: str, token: str) -> str:
        logger.info("Instagram: publishing container %s", creation_id)
        res = self.http.post_json(
            f"{GRAPH_BASE}/{account_id}/media_publish",
            data={"creation_id": creation_id, "access_token": token},
        )
        return str(require_field(res, "id", "Instagram media publish"))

    def _wait_for_container(self, creation_id: str, token: str) -> None:
        """Poll status_code while IN_PROGRESS, at most poll_max_attempts times."""
        status = "IN_PROGRESS"
        attempts = 0
        while status == "IN_PROGRESS" and attempts < self.config.poll_max_attempts:
            self._sleep(self.config.poll_interval)
            res = self.http.get_json(
                f"{GRAPH_BASE}/{creation_id}",
                params={"fields": "status_code", "access_token": token},
            )
            status = str(res.get("status_code") or "UNKNOWN")
            attempts += 1
            logger.info(
                "Instagram: container %s status=%s (check %d/%d)",
                creation_id,
                status,
                attempts,
                self.config.poll_max_attempts,
            )

        if status == "FINISHED":
            return
        if status == "IN_PROGRESS":
            raise PublishTimeout(
                f"Instagram is still processing the video after {attempts} checks (last status: {status})",
                last_status=status,
            )
        raise RemoteAPIError(f"Instagram could not process the video (status: {status})")

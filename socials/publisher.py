# socials/publisher.py
from __future__ import annotations

import logging
import time
from functools import partial
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional
from uuid import uuid4

from definitions import TOKENS_DIR
from socials.errors import NotAuthenticated
from socials.platforms import ALL_PLATFORMS, FACEBOOK, INSTAGRAM, TIKTOK
from socials.token_store import FileTokenStore, TokenStore
from socials.types import MediaAsset, PublishOutcome
from socials.utils import failure_outcome
from utils.http import HttpClient
from utils.media_hosting import get_public_url

from .base import PlatformClient, PublishRequest
from .facebook_client import FacebookClient, FacebookConfig
from .instagram_client import InstagramClient, InstagramConfig
from .tiktok_client import DEFAULT_CHUNK_SIZE, TikTokClient, TikTokConfig

logger = logging.getLogger(__name__)


def token_store_from_config(config: dict) -> FileTokenStore:
    token_dir = (config.get("script", {}) or {}).get("token_dir") or TOKENS_DIR
    return FileTokenStore(Path(token_dir))


def build_clients(
    config: dict,
    store: Optional[TokenStore] = None,
    http: Optional[HttpClient] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, PlatformClient]:
    """Create one client per known platform from the YAML config (missing sections -> unconfigured)."""
    store = store if store is not None else token_store_from_config(config)
    http = http or HttpClient.from_config(config)

    fc = config.get(FACEBOOK, {}) or {}
    ic = config.get(INSTAGRAM, {}) or {}
    tc = config.get(TIKTOK, {}) or {}

    facebook = FacebookClient(
        FacebookConfig(
            app_id=fc.get("app_id"),
            app_secret=fc.get("app_secret"),
            redirect_uri=fc.get("redirect_uri") or FacebookConfig.redirect_uri,
            page_id=fc.get("page_id"),
            access_token=fc.get("access_token"),
        ),
        store,
        http,
    )

    instagram = InstagramClient(
        InstagramConfig(
            app_id=ic.get("app_id"),
            app_secret=ic.get("app_secret"),
            redirect_uri=ic.get("redirect_uri") or InstagramConfig.redirect_uri,
            account_id=ic.get("account_id"),
            access_token=ic.get("access_token"),
            image_publish_delay=float(ic.get("image_publish_delay", 3.0)),
            poll_interval=float(ic.get("poll_interval", 2.0)),
            poll_max_attempts=int(ic.get("poll_max_attempts", 30)),
            video_media_type=ic.get("video_media_type", "REELS"),
        ),
        store,
        http,
        public_url=partial(get_public_url, config),
        sleep=sleep,
    )

    tiktok = TikTokClient(
        TikTokConfig(
            client_key=tc.get("client_key"),
            client_secret=tc.get("client_secret"),
            redirect_uri=tc.get("redirect_uri") or TikTokConfig.redirect_uri,
            access_token=tc.get("access_token"),
            username=tc.get("username"),
            privacy_level=tc.get("privacy_level", "PUBLIC_TO_EVERYONE"),
            chunk_size=int(tc.get("chunk_size", DEFAULT_CHUNK_SIZE)),
            poll_interval=float(tc.get("poll_interval", 3.0)),
            poll_max_attempts=int(tc.get("poll_max_attempts", 30)),
        ),
        store,
        http,
        sleep=sleep,
    )

    return {FACEBOOK: facebook, INSTAGRAM: instagram, TIKTOK: tiktok}


class PublishOrchestrator:
    """
    Platform-agnostic publisher.

    - publish(): one asset + caption to an ordered list of platforms, sequentially;
                 returns exactly one PublishOutcome per requested platform, in order
    - publish_one(): single-platform form used by the upload endpoint

    Best-effort per platform: a failing (or raising) client yields a failure
    outcome and the remaining platforms still run. Partial success is normal.
    """

    def __init__(
        self,
        clients: Dict[str, PlatformClient],
        *,
        nosocial: bool = False,
        verify_auth: bool = False,
    ) -> None:
        self.clients = dict(clients)
        self.nosocial = bool(nosocial)
        # Off by default: callers are expected to check auth status before publishing.
        self.verify_auth = bool(verify_auth)

    @classmethod
    def from_config(
        cls,
        config: dict,
        clients: Optional[Dict[str, PlatformClient]] = None,
        nosocial: Optional[bool] = None,
    ) -> "PublishOrchestrator":
        script_cfg = config.get("script", {}) or {}
        cfg_nosocial = bool(script_cfg.get("nosocial", False))
        return cls(
            clients if clients is not None else build_clients(config),
            nosocial=cfg_nosocial if nosocial is None else bool(nosocial),
            verify_auth=bool(script_cfg.get("verify_auth_before_publish", False)),
        )

    @property
    def platforms(self) -> list[str]:
        known = [p for p in ALL_PLATFORMS if p in self.clients]
        return known + [p for p in self.clients if p not in known]

    # ---------- high-level API ----------
    def publish(self, request: PublishRequest) -> list[PublishOutcome]:
        if not request.platforms:
            logger.warning("PublishOrchestrator.publish: empty platform list; nothing to do.")
            return []

        logger.info(
            "Publishing %s (%s, %d bytes) to %s",
            request.asset.name,
            request.asset.kind,
            request.asset.size,
            list(request.platforms),
        )

        outcomes: list[PublishOutcome] = []
        for name in request.platforms:
            outcomes.append(self.publish_one(name, request.asset, request.caption))

        ok = [o.platform for o in outcomes if o.success]
        failed = [o.platform for o in outcomes if not o.success]
        logger.info("Publish finished: succeeded=%s failed=%s", ok, failed)
        return outcomes

    def publish_one(self, platform: str, asset: MediaAsset, caption: str) -> PublishOutcome:
        client = self.clients.get(platform)
        if client is None:
            logger.warning("PublishOrchestrator: unknown platform %r", platform)
            return PublishOutcome(
                platform=platform,
                success=False,
                message=f"Unknown platform: {platform}",
                error="UnknownPlatform",
            )

        # NOSOCIAL centrally
        if self.nosocial:
            preview = (caption or "").strip().replace("\n", " ")[:180]
            logger.info("[NOSOCIAL] (%s) Would publish %s %s → %s", platform, asset.kind, asset.name, preview)
            return PublishOutcome(
                platform=platform,
                success=True,
                message=f"[nosocial] {asset.kind} not sent to {platform}",
                post_id=f"nosocial-{uuid4()}",
            )

        try:
            if self.verify_auth and not client.is_authenticated():
                return failure_outcome(
                    platform,
                    NotAuthenticated(f"Not connected to {platform}. Please connect your account first."),
                )
            outcome = client.publish(asset, caption)
        except Exception as e:
            logger.exception("PublishOrchestrator: %s.publish(...) raised; recording failure.", platform)
            return failure_outcome(platform, e)

        if not isinstance(outcome, PublishOutcome):
            logger.error("PublishOrchestrator: %s.publish(...) returned %r", platform, outcome)
            return PublishOutcome(platform=platform, success=False, message=f"Upload to {platform} failed")

        logger.info(
            "PublishOrchestrator: %s -> success=%s post_id=%s message=%s",
            platform,
            outcome.success,
            outcome.post_id,
            outcome.message,
        )
        return outcome

    def auth_status(self, platforms: Iterable[str] | None = None) -> dict[str, bool]:
        """Live authentication check for each platform (never raises)."""
        status: dict[str, bool] = {}
        for name in platforms or self.platforms:
            client = self.clients.get(name)
            status[name] = bool(client and client.is_authenticated())
        return status

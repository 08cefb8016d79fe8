# socials/auth_router.py
"""
OAuth glue between the HTTP edge and the platform clients.

Every method returns (http_status, body) so the server stays a thin
transport and this layer can be exercised without sockets.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from socials.base import PlatformClient
from socials.errors import AuthNotConfigured, SocialAgentError
from socials.platforms import ALL_PLATFORMS

logger = logging.getLogger(__name__)

# Sent to the OAuth popup once the exchange is done.
CLOSE_POPUP_HTML = "<script>window.close();</script>"


class AuthCallbackRouter:
    def __init__(self, clients: Dict[str, PlatformClient]) -> None:
        self.clients = dict(clients)

    def _client(self, platform: str) -> Optional[PlatformClient]:
        return self.clients.get(platform)

    def auth_status(self) -> Tuple[int, Dict[str, bool]]:
        """GET /api/auth/status -> {platform: bool} for every known platform."""
        status: Dict[str, bool] = {}
        for name in ALL_PLATFORMS + [p for p in self.clients if p not in ALL_PLATFORMS]:
            client = self._client(name)
            if client is None:
                status[name] = False
                continue
            try:
                status[name] = bool(client.is_authenticated())
            except Exception:
                logger.exception("Auth status check for %s raised; reporting not authenticated", name)
                status[name] = False
        return 200, status

    def start(self, platform: str) -> Tuple[int, dict]:
        """POST /api/auth/{platform} -> {"authUrl": ...}."""
        client = self._client(platform)
        if client is None:
            return 404, {"error": f"Unknown platform: {platform}"}

        try:
            auth_url = client.get_authorization_url()
        except AuthNotConfigured as e:
            logger.error("%s auth not configured: %s", platform, e)
            return 500, {"error": f"Error initiating {platform} authentication: {e}"}
        except SocialAgentError as e:
            logger.error("%s auth initiation failed: %s", platform, e)
            return 500, {"error": f"Error initiating {platform} authentication"}

        logger.info("Issued %s authorization URL", platform)
        return 200, {"authUrl": auth_url}

    def callback(self, platform: str, code: Optional[str], state: Optional[str] = None) -> Tuple[int, str]:
        """GET /api/auth/{platform}/callback?code=&state= -> popup-closing HTML or a short error."""
        client = self._client(platform)
        if client is None:
            return 404, f"Unknown platform: {platform}"
        if not code:
            logger.warning("%s callback without an authorization code", platform)
            return 400, "Authorization failed"

        result = client.exchange_code_for_token(code, state)
        if result.success:
            return 200, CLOSE_POPUP_HTML
        if result.error == "InvalidState":
            return 400, "Authorization failed: invalid state"
        if result.error == "AuthNotConfigured":
            return 500, f"Error completing {platform} authentication: {result.message}"
        return 502, f"Error completing {platform} authentication"

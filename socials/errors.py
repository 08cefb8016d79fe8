# socials/errors.py
"""
Error taxonomy shared by the platform clients.

Every error carries a short `code` that ends up in PublishOutcome.error /
AuthResult.error, so the edge can tell failures apart without parsing text.
"""

from __future__ import annotations

from typing import Any, Optional


class SocialAgentError(Exception):
    code = "SocialAgentError"


class AuthNotConfigured(SocialAgentError):
    """Client credentials (app id/secret, page id, ...) are missing."""

    code = "AuthNotConfigured"


class AuthExchangeFailed(SocialAgentError):
    code = "AuthExchangeFailed"


class InvalidState(SocialAgentError):
    """OAuth callback presented a state that is not the last issued nonce."""

    code = "InvalidState"


class UnsupportedMediaType(SocialAgentError):
    code = "UnsupportedMediaType"


class NotAuthenticated(SocialAgentError):
    code = "NotAuthenticated"


class RemoteAPIError(SocialAgentError):
    """Non-2xx or malformed response from a platform API."""

    code = "RemoteAPIError"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class PublishTimeout(SocialAgentError):
    """A status poll loop ran out of attempts before reaching a terminal state."""

    code = "Timeout"

    def __init__(self, message: str, last_status: Optional[str] = None) -> None:
        super().__init__(message)
        self.last_status = last_status


class LocalIOError(SocialAgentError):
    code = "LocalIOError"

# socials/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

from socials.platforms import is_known_platform
from socials.types import AuthResult, MediaAsset, PublishOutcome


@dataclass
class PublishRequest:
    """
    One asset + caption going out to an ordered list of platforms.

    - `caption` is free text; each client truncates it to its own limit.
    - `platforms` order is the order outcomes come back in.
    """

    asset: MediaAsset
    caption: str = ""
    platforms: List[str] = field(default_factory=list)

    def validate(self, known: Optional[Iterable[str]] = None) -> None:
        """Raise ValueError unless the target list is non-empty and every id is known."""
        if not self.platforms:
            raise ValueError("At least one target platform is required.")
        known_set = set(known) if known is not None else None
        for p in self.platforms:
            ok = p in known_set if known_set is not None else is_known_platform(p)
            if not ok:
                raise ValueError(f"Unknown platform: {p}")


class PlatformClient(Protocol):
    """
    All platform adapters (Facebook, Instagram, TikTok) implement this.

    MUST:
      - verify a persisted credential live in is_authenticated() and never raise there
      - build the OAuth consent URL (and any CSRF nonce) in get_authorization_url()
      - persist the credential only after the whole exchange succeeded
      - return a PublishOutcome from publish(), never raise
    """

    platform: str

    def is_authenticated(self) -> bool: ...

    def get_authorization_url(self) -> str: ...

    def exchange_code_for_token(self, code: str, state: Optional[str] = None) -> AuthResult: ...

    def publish(self, asset: MediaAsset, caption: str) -> PublishOutcome: ...

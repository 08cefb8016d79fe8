# socials/types.py
from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional

from socials.errors import LocalIOError, UnsupportedMediaType

MediaKind = Literal["image", "video"]


@dataclass
class Credential:
    """Bearer credential for one platform. Opaque; validity is only known by asking the platform."""

    platform: str
    token: str


@dataclass
class MediaAsset:
    """
    A media file on disk that is about to be published.

    path:      local file (the upload layer owns and deletes it)
    kind:      "image" | "video"
    size:      byte length, used for upload-session declarations and chunking
    mime_type: declared or guessed content type (e.g., "video/mp4")
    """

    path: Path
    kind: MediaKind
    size: int
    mime_type: Optional[str] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_video(self) -> bool:
        return self.kind == "video"

    @classmethod
    def from_path(cls, path: str | Path, mime_type: Optional[str] = None) -> "MediaAsset":
        p = Path(path)
        mime = mime_type or mimetypes.guess_type(p.name)[0]
        if not mime:
            raise UnsupportedMediaType(f"Cannot determine media type of {p.name}")

        if mime.startswith("image/"):
            kind: MediaKind = "image"
        elif mime.startswith("video/"):
            kind = "video"
        else:
            raise UnsupportedMediaType(f"Only images or videos can be published (got {mime})")

        try:
            size = p.stat().st_size
        except OSError as e:
            raise LocalIOError(f"Cannot read media file {p}: {e}") from e

        return cls(path=p, kind=kind, size=size, mime_type=mime)


@dataclass
class PublishOutcome:
    """Normalized per-platform result of one publish attempt.

    platform: "facebook" | "instagram" | "tiktok" | whatever was requested
    success:  whether the post is live (or accepted) on the platform
    message:  short human-readable status for the UI
    post_id:  platform id of the created post, when known
    url:      public URL of the post, when it can be computed
    error:    error code (see socials.errors) when success is False
    """

    platform: str
    success: bool
    message: str
    post_id: str | None = None
    url: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "success": self.success,
            "message": self.message,
            "postId": self.post_id,
            "url": self.url,
            "error": self.error,
        }


@dataclass
class AuthResult:
    platform: str
    success: bool
    message: str = ""
    error: str | None = None

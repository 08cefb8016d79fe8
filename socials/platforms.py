# socials/platforms.py

"""
Centralized platform constants.

These are *logical* ids, not tied to config. The PublishOrchestrator will
still only publish to platforms it has a client for.
"""

from typing import Dict, FrozenSet, List

FACEBOOK = "facebook"
INSTAGRAM = "instagram"
TIKTOK = "tiktok"

# Display / auth-status order
ALL_PLATFORMS: List[str] = [FACEBOOK, INSTAGRAM, TIKTOK]

# Max caption length each platform accepts; longer captions are cut.
CAPTION_LIMITS: Dict[str, int] = {
    FACEBOOK: 63206,
    INSTAGRAM: 2200,
    TIKTOK: 150,
}

# Upload allow-list used by the edge layer.
MAX_UPLOAD_BYTES = 100 * 1024 * 1024  # 100MB
ALLOWED_EXTENSIONS: FrozenSet[str] = frozenset({".jpeg", ".jpg", ".png", ".gif", ".mp4", ".mov", ".avi"})
ALLOWED_MIME_TYPES: FrozenSet[str] = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "video/avi",
    }
)


def is_known_platform(platform: str) -> bool:
    return platform in ALL_PLATFORMS

# socials/utils.py
from __future__ import annotations

import logging
import math
from collections.abc import Callable
from functools import wraps
from typing import Iterator, Tuple

import requests

from socials.errors import AuthExchangeFailed, AuthNotConfigured, InvalidState, RemoteAPIError, SocialAgentError
from socials.platforms import CAPTION_LIMITS
from socials.types import AuthResult, PublishOutcome

logger = logging.getLogger(__name__)


def truncate_caption(platform: str, caption: str | None) -> str:
    """Cut `caption` to what `platform` accepts (no limit for unknown platforms)."""
    text = caption or ""
    limit = CAPTION_LIMITS.get(platform)
    if limit is not None and len(text) > limit:
        logger.info("%s: caption truncated from %d to %d characters", platform, len(text), limit)
        return text[:limit]
    return text


def chunk_count(total_size: int, chunk_size: int) -> int:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return math.ceil(total_size / chunk_size)


def iter_chunk_ranges(total_size: int, chunk_size: int) -> Iterator[Tuple[int, int]]:
    """
    Yield inclusive (start, end) byte ranges covering [0, total_size).

    Ranges are contiguous, strictly increasing and never overlap; the last one
    is short when total_size is not a multiple of chunk_size.
    """
    if total_size <= 0:
        raise ValueError("total_size must be positive")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    start = 0
    while start < total_size:
        end = min(start + chunk_size, total_size) - 1
        yield start, end
        start = end + 1


def require_field(payload: dict, key: str, what: str):
    """Return payload[key] or raise RemoteAPIError naming the protocol step that lacked it."""
    value = payload.get(key) if isinstance(payload, dict) else None
    if value in (None, ""):
        raise RemoteAPIError(f"{what}: response is missing '{key}'", payload=payload)
    return value


def failure_outcome(platform: str, exc: BaseException) -> PublishOutcome:
    """Turn an exception raised inside a publish into a failure outcome."""
    if isinstance(exc, SocialAgentError):
        return PublishOutcome(platform=platform, success=False, message=str(exc), error=exc.code)
    if isinstance(exc, requests.RequestException):
        return PublishOutcome(
            platform=platform,
            success=False,
            message=f"Network error talking to {platform}: {type(exc).__name__}",
            error="RemoteAPIError",
        )
    if isinstance(exc, OSError):
        return PublishOutcome(
            platform=platform,
            success=False,
            message=f"Cannot read media file: {exc}",
            error="LocalIOError",
        )
    return PublishOutcome(
        platform=platform,
        success=False,
        message=f"Upload to {platform} failed",
        error=type(exc).__name__,
    )


def publish_boundary(func: Callable) -> Callable:
    """
    Decorator for PlatformClient.publish(): nothing escapes, every error becomes
    a failure PublishOutcome. Expected errors are logged as errors, anything
    else with a traceback.
    """

    @wraps(func)
    def wrapper(self, *args, **kwargs) -> PublishOutcome:
        platform = getattr(self, "platform", "unknown")
        try:
            return func(self, *args, **kwargs)
        except (SocialAgentError, requests.RequestException, OSError) as e:
            logger.error("%s: publish failed (%s): %s", platform, type(e).__name__, e)
            return failure_outcome(platform, e)
        except Exception as e:
            logger.exception("%s: publish raised unexpectedly", platform)
            return failure_outcome(platform, e)

    return wrapper


def exchange_boundary(func: Callable) -> Callable:
    """
    Decorator for PlatformClient.exchange_code_for_token(): returns an AuthResult.

    InvalidState / AuthNotConfigured keep their own code; every network, API,
    parsing or persistence problem is reported as AuthExchangeFailed.
    """

    @wraps(func)
    def wrapper(self, *args, **kwargs) -> AuthResult:
        platform = getattr(self, "platform", "unknown")
        try:
            func(self, *args, **kwargs)
        except (InvalidState, AuthNotConfigured) as e:
            logger.error("%s: authentication rejected (%s): %s", platform, e.code, e)
            return AuthResult(platform=platform, success=False, message=str(e), error=e.code)
        except (SocialAgentError, requests.RequestException, KeyError, TypeError, ValueError) as e:
            logger.error("%s: token exchange failed (%s): %s", platform, type(e).__name__, e)
            return _exchange_failed(platform, e)
        except Exception as e:
            logger.exception("%s: token exchange raised unexpectedly", platform)
            return _exchange_failed(platform, e)
        logger.info("%s: authentication completed", platform)
        return AuthResult(platform=platform, success=True, message=f"Connected to {platform}")

    return wrapper


def _exchange_failed(platform: str, exc: BaseException) -> AuthResult:
    message = f"Failed to complete {platform} authentication"
    if isinstance(exc, SocialAgentError):
        message = f"{message}: {exc}"
    return AuthResult(platform=platform, success=False, message=message, error=AuthExchangeFailed.code)

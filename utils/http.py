# utils/http.py
from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import requests

from socials.errors import RemoteAPIError

log = logging.getLogger(__name__)

# ===== Tunables (overridable via config["http"]) =====
MAX_TOTAL_RETRIES = 4  # total attempts per idempotent request
BASE_BACKOFF = 0.75  # seconds (exponential, with jitter)
MAX_BACKOFF = 30.0  # cap a single sleep
TIMEOUT = 30.0  # per request timeout
UPLOAD_TIMEOUT = 300.0  # bulk/chunk transfers

USER_AGENT = "SocialMediaAgent/1.0"


def _error_message(payload: Any) -> Optional[str]:
    """Pull the human-readable error out of a Graph / TikTok style error body."""
    if not isinstance(payload, dict):
        return None
    err = payload.get("error")
    if isinstance(err, dict):
        return err.get("message") or err.get("error_user_msg") or err.get("code")
    if isinstance(err, str):
        return payload.get("error_description") or err
    return None


def _decode(resp: requests.Response) -> Any:
    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return None


class HttpClient:
    """
    Thin wrapper around a shared `requests.Session`.

    - get_json(): retries connection errors, 429 and 5xx with backoff + jitter
                  (GETs are idempotent: identity checks, status polls)
    - post_json()/put(): single attempt; a publish must not be replayed blindly
    - any non-2xx or non-JSON answer raises RemoteAPIError
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = TIMEOUT,
        max_retries: int = MAX_TOTAL_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: dict) -> "HttpClient":
        http_cfg = config.get("http", {}) or {}
        return cls(
            timeout=float(http_cfg.get("timeout", TIMEOUT)),
            max_retries=int(http_cfg.get("max_retries", MAX_TOTAL_RETRIES)),
        )

    # ---------- public API ----------
    def get_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        timeout = timeout or self.timeout

        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self.session.get(url, params=params, headers=headers, timeout=timeout)
            except requests.exceptions.ConnectionError as e:
                log.warning(
                    "ConnectionError (%s) for GET %s (attempt %d/%d)",
                    type(e).__name__,
                    url,
                    attempt,
                    self.max_retries,
                )
                if attempt == self.max_retries:
                    raise
                self._sleep_with_jitter(attempt, None)
                continue

            if resp.status_code == 429 or 500 <= resp.status_code < 600:
                log.warning("%d for GET %s (attempt %d/%d)", resp.status_code, url, attempt, self.max_retries)
                if attempt < self.max_retries:
                    self._sleep_with_jitter(attempt, resp.headers.get("Retry-After"))
                    continue

            return self._check(resp, "GET", url)

        raise RuntimeError(f"Exhausted retries for {url}")

    def post_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Any = None,
        json: Any = None,
        files: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        resp = self.session.post(
            url,
            params=params,
            data=data,
            json=json,
            files=files,
            headers=headers,
            timeout=timeout or self.timeout,
        )
        return self._check(resp, "POST", url)

    def put(
        self,
        url: str,
        *,
        data: bytes,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """PUT a raw body; returns the status code (bodies of upload endpoints are often empty)."""
        resp = self.session.put(url, data=data, headers=headers, timeout=timeout or UPLOAD_TIMEOUT)
        if not 200 <= resp.status_code < 300:
            payload = _decode(resp)
            raise RemoteAPIError(
                _error_message(payload) or f"PUT {url} failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
                payload=payload if payload is not None else resp.text[:500],
            )
        return resp.status_code

    # ---------- helpers ----------
    def _check(self, resp: requests.Response, method: str, url: str) -> Dict[str, Any]:
        payload = _decode(resp)

        if not 200 <= resp.status_code < 300:
            log.error("%s %s failed (%s): %s", method, url, resp.status_code, payload or resp.text[:500])
            raise RemoteAPIError(
                _error_message(payload) or f"{method} {url} failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
                payload=payload,
            )

        if not isinstance(payload, dict):
            raise RemoteAPIError(
                f"Invalid JSON from {url}",
                status_code=resp.status_code,
                payload=resp.text[:500],
            )

        log.debug("%s %s -> %s", method, url, payload)
        return payload

    def _sleep_with_jitter(self, attempt: int, retry_after: Optional[str]) -> None:
        if retry_after:
            try:
                secs = min(MAX_BACKOFF, float(retry_after))
            except ValueError:
                secs = 0.0
        else:
            secs = min(MAX_BACKOFF, BASE_BACKOFF * (2 ** (attempt - 1)))
            secs += random.uniform(0, secs * 0.25)
        secs = max(0.5, secs)
        self._sleep(secs)

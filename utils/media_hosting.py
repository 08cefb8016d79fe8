from __future__ import annotations

import base64
import logging
import mimetypes
import time
from pathlib import Path

import boto3
import requests

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_BASE_URL = "http://localhost:3000"
GITHUB_API = "https://api.github.com"


def _content_type(path: Path) -> str:
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


def _object_name(prefix: str, path: Path) -> str:
    """<prefix>/<epoch>_<file name>, so repeated uploads of the same name never collide."""
    return "/".join(p for p in (prefix.strip("/"), f"{int(time.time())}_{path.name}") if p)


def local_url(cfg: dict, path: Path) -> str:
    """URL of the file under the server's own /uploads/ route (no copy made)."""
    base = (cfg.get("base_url") or f"{DEFAULT_PUBLIC_BASE_URL}/uploads").rstrip("/")
    return f"{base}/{path.name}"


def upload_b2(cfg: dict, path: Path) -> str:
    """Copy to a public Backblaze B2 bucket through its S3-compatible API."""
    endpoint = cfg.get("endpoint_url") or f"https://s3.{cfg['region']}.backblazeb2.com"
    key = _object_name(cfg.get("prefix", "socialagent"), path)

    s3 = boto3.client(
        "s3",
        region_name=cfg["region"],
        endpoint_url=endpoint,
        aws_access_key_id=cfg["access_key_id"],
        aws_secret_access_key=cfg["secret_access_key"],
    )
    logger.info("Media hosting: uploading %s to b2://%s/%s", path.name, cfg["bucket"], key)
    s3.upload_file(
        str(path),
        cfg["bucket"],
        key,
        ExtraArgs={"ContentType": _content_type(path), "ACL": "public-read"},
    )
    return f"{endpoint.rstrip('/')}/{cfg['bucket']}/{key}"


def upload_github_raw(cfg: dict, path: Path) -> str:
    """Commit the file to a GitHub repo and return its raw.githubusercontent.com URL (small files only)."""
    owner, repo = cfg["owner"], cfg["repo"]
    branch = cfg.get("branch", "main")
    dest = _object_name(cfg.get("subdir", "media"), path)

    logger.info("Media hosting: committing %s to %s/%s@%s", path.name, owner, repo, branch)
    resp = requests.put(
        f"{GITHUB_API}/repos/{owner}/{repo}/contents/{dest}",
        headers={"Authorization": f"Bearer {cfg['token']}", "Accept": "application/vnd.github+json"},
        json={
            "message": f"Add {path.name}",
            "branch": branch,
            "content": base64.b64encode(path.read_bytes()).decode("ascii"),
        },
        timeout=120,
    )
    resp.raise_for_status()
    return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{dest}"


def get_public_url(root_cfg: dict, local_path: Path) -> str:
    """
    Make `local_path` fetchable by a remote platform and return its URL.

    provider "local" points at this server's /uploads/ route (server.public_base_url);
    "backblaze" / "github" upload a copy, falling back to the other on failure.
    """
    hosting = root_cfg.get("media_hosting", {}) or {}
    provider = (hosting.get("provider") or "local").lower()

    if provider == "local":
        local_cfg = dict(hosting.get("local", {}) or {})
        if not local_cfg.get("base_url"):
            server_base = (root_cfg.get("server", {}) or {}).get("public_base_url") or DEFAULT_PUBLIC_BASE_URL
            local_cfg["base_url"] = f"{server_base.rstrip('/')}/uploads"
        return local_url(local_cfg, local_path)

    try_primary = upload_b2 if provider == "backblaze" else upload_github_raw
    try_fallback = upload_github_raw if provider == "backblaze" else upload_b2
    fallback_name = "github" if provider == "backblaze" else "backblaze"
    try:
        return try_primary(hosting[provider], local_path)
    except Exception as e:
        if fallback_name not in hosting:
            raise
        logger.warning("Media hosting via %s failed (%s); falling back to %s", provider, e, fallback_name)
        return try_fallback(hosting[fallback_name], local_path)

#!/usr/bin/env python
"""
HTTP edge for the Social Media Agent.

- /api/auth/status, /api/auth/{platform}, /api/auth/{platform}/callback (OAuth)
- /api/upload  (multipart: mediaFile, platform, caption) -> one PublishOutcome
- /api/publish (multipart: mediaFile, platforms, caption) -> {"results": [...]}
- /uploads/<name> serves the upload directory so remote platforms can pull media
"""

import argparse
import email.parser
import email.policy
import http.server
import json
import logging
import random
import re
import socketserver
import time
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from definitions import UPLOADS_DIR
from socials.auth_router import AuthCallbackRouter
from socials.base import PublishRequest
from socials.errors import SocialAgentError
from socials.platforms import ALLOWED_EXTENSIONS, ALLOWED_MIME_TYPES, MAX_UPLOAD_BYTES, is_known_platform
from socials.publisher import PublishOrchestrator, build_clients
from socials.types import MediaAsset
from utils.others import release_file

logger = logging.getLogger("socialagent.server")

# Room for multipart boundaries and the text fields on top of the file itself.
MULTIPART_OVERHEAD = 64 * 1024

CALLBACK_RE = re.compile(r"^/api/auth/([a-z0-9_-]+)/callback/?$")
AUTH_START_RE = re.compile(r"^/api/auth/([a-z0-9_-]+)/?$")


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


def parse_multipart(content_type: str, body: bytes) -> Tuple[Dict[str, str], Dict[str, UploadedFile]]:
    """Split a multipart/form-data body into text fields and file parts."""
    if not content_type or not content_type.lower().startswith("multipart/form-data"):
        raise ValueError("Expected multipart/form-data")

    head = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    msg = email.parser.BytesParser(policy=email.policy.HTTP).parsebytes(head + body)
    if not msg.is_multipart():
        raise ValueError("Malformed multipart body")

    fields: Dict[str, str] = {}
    files: Dict[str, UploadedFile] = {}
    for part in msg.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        payload = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        if filename is not None:
            files[name] = UploadedFile(filename=filename, content_type=part.get_content_type(), data=payload)
        else:
            charset = part.get_content_charset() or "utf-8"
            fields[name] = payload.decode(charset, errors="replace")
    return fields, files


def is_allowed_upload(upload: UploadedFile) -> bool:
    ext = Path(upload.filename).suffix.lower()
    return ext in ALLOWED_EXTENSIONS and upload.content_type.lower() in ALLOWED_MIME_TYPES


def save_upload(upload: UploadedFile, upload_dir: Path) -> Path:
    upload_dir.mkdir(parents=True, exist_ok=True)
    unique = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    path = upload_dir / f"{unique}{Path(upload.filename).suffix.lower()}"
    path.write_bytes(upload.data)
    return path


class AgentApp:
    """Request handling independent of the socket layer."""

    def __init__(
        self,
        orchestrator: PublishOrchestrator,
        router: AuthCallbackRouter,
        upload_dir: Path = UPLOADS_DIR,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ) -> None:
        self.orchestrator = orchestrator
        self.router = router
        self.upload_dir = Path(upload_dir)
        self.max_upload_bytes = max_upload_bytes

    @classmethod
    def from_config(cls, config: dict) -> "AgentApp":
        script_cfg = config.get("script", {}) or {}
        server_cfg = config.get("server", {}) or {}
        clients = build_clients(config)
        max_mb = server_cfg.get("max_upload_mb")
        return cls(
            orchestrator=PublishOrchestrator.from_config(config, clients=clients),
            router=AuthCallbackRouter(clients),
            upload_dir=Path(script_cfg.get("upload_dir") or UPLOADS_DIR),
            max_upload_bytes=int(max_mb) * 1024 * 1024 if max_mb else MAX_UPLOAD_BYTES,
        )

    def handle_upload(
        self,
        fields: Dict[str, str],
        files: Dict[str, UploadedFile],
        multi: bool = False,
    ) -> Tuple[int, Dict[str, Any]]:
        upload = files.get("mediaFile")
        if upload is None or not upload.data:
            return 400, {"success": False, "message": "No file uploaded"}
        if len(upload.data) > self.max_upload_bytes:
            return 413, {"success": False, "message": "File is too large"}
        if not is_allowed_upload(upload):
            return 415, {
                "success": False,
                "message": "Only image (JPEG, PNG, GIF) or video (MP4, MOV, AVI) files are allowed",
            }

        caption = fields.get("caption", "")
        if multi:
            platforms = [p.strip() for p in fields.get("platforms", "").split(",") if p.strip()]
            bad = [p for p in platforms if not is_known_platform(p)]
            if not platforms or bad:
                return 400, {"success": False, "message": f"Invalid platform list: {fields.get('platforms', '')}"}
        else:
            platform = (fields.get("platform") or "").strip()
            if not is_known_platform(platform):
                return 400, {"success": False, "message": "Invalid platform"}
            platforms = [platform]

        path = save_upload(upload, self.upload_dir)
        try:
            asset = MediaAsset.from_path(path, upload.content_type)
            if multi:
                outcomes = self.orchestrator.publish(PublishRequest(asset=asset, caption=caption, platforms=platforms))
                return 200, {"results": [o.to_dict() for o in outcomes]}
            outcome = self.orchestrator.publish_one(platforms[0], asset, caption)
            return 200, outcome.to_dict()
        except SocialAgentError as e:
            logger.error("Upload rejected: %s", e)
            return 400, {"success": False, "message": str(e), "error": e.code}
        finally:
            # Exactly once, after every targeted publish has finished.
            release_file(path)


class AgentHandler(http.server.SimpleHTTPRequestHandler):
    """HTTP handler: JSON API + static /uploads/."""

    def __init__(self, *args, app: AgentApp, **kwargs) -> None:
        self.app = app
        super().__init__(*args, **kwargs)

    def log_message(self, format: str, *args) -> None:
        logger.debug("HTTP: " + format, *args)

    # ---------- routing ----------
    def do_GET(self) -> None:
        url = urlsplit(self.path)
        path = url.path

        if path == "/api/auth/status":
            status, payload = self.app.router.auth_status()
            self._send_json(status, payload)
            return

        match = CALLBACK_RE.match(path)
        if match:
            query = parse_qs(url.query)
            code = (query.get("code") or [None])[0]
            state = (query.get("state") or [None])[0]
            status, body = self.app.router.callback(match.group(1), code, state)
            self._send_html(status, body)
            return

        if path.startswith("/uploads/"):
            self.path = path[len("/uploads") :]
            super().do_GET()
            return

        self._send_json(404, {"error": "not found"})

    def list_directory(self, path):
        # /uploads/ serves single files only; no index pages.
        self.send_error(404, "File not found")
        return None

    def do_POST(self) -> None:
        path = urlsplit(self.path).path

        if path in ("/api/upload", "/api/publish"):
            self._handle_upload(multi=path == "/api/publish")
            return

        match = AUTH_START_RE.match(path)
        if match and match.group(1) != "status":
            status, payload = self.app.router.start(match.group(1))
            self._send_json(status, payload)
            return

        self._send_json(404, {"error": "not found"})

    def _handle_upload(self, multi: bool) -> None:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            self._send_json(400, {"success": False, "message": "Bad Content-Length"})
            return
        if length > self.app.max_upload_bytes + MULTIPART_OVERHEAD:
            self._send_json(413, {"success": False, "message": "File is too large"})
            return

        body = self.rfile.read(length)
        try:
            fields, files = parse_multipart(self.headers.get("Content-Type", ""), body)
        except ValueError as e:
            self._send_json(400, {"success": False, "message": str(e)})
            return

        try:
            status, payload = self.app.handle_upload(fields, files, multi=multi)
        except Exception as exc:
            logger.exception("Error handling upload: %s", exc)
            status, payload = 500, {"success": False, "message": "Internal server error"}
        self._send_json(status, payload)

    # ---------- responses ----------
    def _send_json(self, status: int, payload: Any) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _send_html(self, status: int, body: str) -> None:
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)


class ThreadingServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    allow_reuse_address = True
    daemon_threads = True


def serve(config: dict, host: Optional[str] = None, port: Optional[int] = None) -> None:
    server_cfg = config.get("server", {}) or {}
    host = host or server_cfg.get("host", "0.0.0.0")
    port = int(port or server_cfg.get("port", 3000))

    app = AgentApp.from_config(config)
    app.upload_dir.mkdir(parents=True, exist_ok=True)
    handler = partial(AgentHandler, app=app, directory=str(app.upload_dir))

    with ThreadingServer((host, port), handler) as httpd:
        logger.info("Social Media Agent listening on http://%s:%d", host, port)
        logger.info("Press Ctrl+C to stop.")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down server...")


def main() -> None:
    from utils.config import apply_env_overrides, load_config

    parser = argparse.ArgumentParser(description="Social Media Agent HTTP server.")
    parser.add_argument("--config", default="config/config.yaml", help="Path to the configuration file.")
    parser.add_argument("--host", default=None, help="Host to bind (default: server.host or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind (default: server.port or 3000)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s - %(message)s",
    )

    config = apply_env_overrides(load_config(args.config))
    serve(config, host=args.host, port=args.port)


if __name__ == "__main__":
    main()

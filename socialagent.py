# pylint: disable=wrong-import-position


import argparse
import json
import logging
import sys

import utils.others as otherutils
from socials.auth_router import AuthCallbackRouter
from socials.base import PublishRequest
from socials.errors import SocialAgentError
from socials.platforms import ALL_PLATFORMS
from socials.publisher import PublishOrchestrator, build_clients
from socials.types import MediaAsset
from utils.config import apply_env_overrides, load_config

logger = logging.getLogger("socialagent")


def _resolve_nosocial(args, config) -> bool:
    """CLI flag wins when given; otherwise script.nosocial from the YAML."""
    yaml_nosocial = bool((config.get("script", {}) or {}).get("nosocial", False))
    cli_nosocial = bool(getattr(args, "nosocial", False))
    return True if cli_nosocial else yaml_nosocial


def cmd_serve(args, config) -> int:
    import server

    server.serve(config, host=args.host, port=args.port)
    return 0


def cmd_status(args, config) -> int:
    router = AuthCallbackRouter(build_clients(config))
    _, status = router.auth_status()
    for platform, ok in status.items():
        print(f"{platform:<10} {'connected' if ok else 'not connected'}")
    return 0


def cmd_auth(args, config) -> int:
    router = AuthCallbackRouter(build_clients(config))
    code, payload = router.start(args.platform)
    if code != 200:
        print(payload.get("error", "Authorization failed"), file=sys.stderr)
        return 1
    print(payload["authUrl"])
    return 0


def cmd_callback(args, config) -> int:
    router = AuthCallbackRouter(build_clients(config))
    code, body = router.callback(args.platform, args.code, args.state)
    if code != 200:
        print(body, file=sys.stderr)
        return 1
    print(f"{args.platform} connected.")
    return 0


def cmd_publish(args, config) -> int:
    try:
        asset = MediaAsset.from_path(args.file)
    except SocialAgentError as e:
        print(f"{e.code}: {e}", file=sys.stderr)
        return 2

    orchestrator = PublishOrchestrator.from_config(config, nosocial=_resolve_nosocial(args, config))
    platforms = args.platform or orchestrator.platforms
    request = PublishRequest(asset=asset, caption=args.caption or "", platforms=platforms)
    try:
        request.validate(known=orchestrator.platforms)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    outcomes = orchestrator.publish(request)
    print(json.dumps({"results": [o.to_dict() for o in outcomes]}, indent=2))
    return 0 if all(o.success for o in outcomes) else 1


def build_parser() -> argparse.ArgumentParser:
    # fmt: off
    parser = argparse.ArgumentParser(description="Publish one media file to Facebook, Instagram and TikTok.")
    parser.add_argument("--config", type=str, default="config/config.yaml", help="Path to the configuration file (default: config/config.yaml).")
    parser.add_argument("--nosocial", action="store_true", help="Log what would be published instead of posting to socials.")
    parser.add_argument("--dry-run", dest="nosocial", action="store_true", help="Alias for --nosocial (no posting).")
    parser.add_argument("--console", action="store_true", help="Write logs to console instead of a file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="Run the HTTP server (upload form API + OAuth callbacks).")
    p_serve.add_argument("--host", default=None, help="Host to bind (default: server.host or 0.0.0.0)")
    p_serve.add_argument("--port", type=int, default=None, help="Port to bind (default: server.port or 3000)")
    p_serve.set_defaults(func=cmd_serve)

    p_status = sub.add_parser("status", help="Show which platforms hold a working token.")
    p_status.set_defaults(func=cmd_status)

    p_auth = sub.add_parser("auth", help="Print the authorization URL for a platform.")
    p_auth.add_argument("platform", choices=ALL_PLATFORMS)
    p_auth.set_defaults(func=cmd_auth)

    p_callback = sub.add_parser("callback", help="Finish an OAuth flow with the code from the redirect.")
    p_callback.add_argument("platform", choices=ALL_PLATFORMS)
    p_callback.add_argument("code", help="Authorization code from the redirect URL.")
    p_callback.add_argument("--state", default=None, help="State value from the redirect URL (TikTok).")
    p_callback.set_defaults(func=cmd_callback)

    p_publish = sub.add_parser("publish", help="Publish a local file.")
    p_publish.add_argument("file", help="Image or video to publish.")
    p_publish.add_argument("--caption", type=str, default="", help="Caption text.")
    p_publish.add_argument("--platform", action="append", choices=ALL_PLATFORMS, help="Target platform (repeatable; default: all).")
    p_publish.set_defaults(func=cmd_publish)
    # fmt: on
    return parser


def main(argv=None) -> int:
    """
    Entry point for the Social Media Agent.

    Parses command-line arguments, loads the YAML configuration (with environment
    overrides), sets up logging and dispatches to the chosen subcommand.
    """
    args = build_parser().parse_args(argv)

    # Load configuration
    config = apply_env_overrides(load_config(args.config))

    # Setup logging & log startup info
    otherutils.setup_logging(config, console=args.console, debug=args.debug)
    otherutils.log_startup_info(args, config)

    if args.nosocial:
        config.setdefault("script", {})
        if config["script"] is None:
            config["script"] = {}
        config["script"]["nosocial"] = True

    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())

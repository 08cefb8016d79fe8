import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from definitions import LOGS_DIR

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s.%(funcName)s:%(lineno)d] %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every request at INFO/DEBUG.
QUIET_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer")


class ColoredFormatter(logging.Formatter):
    """Console formatter that tints the level name; the record itself is left untouched."""

    COLORS = {
        "DEBUG": "\033[38;5;244m",
        "INFO": "\033[38;5;120m",
        "WARNING": "\033[38;5;221m",
        "ERROR": "\033[38;5;196m",
        "CRITICAL": "\033[1;38;5;196;48;5;232m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname)
        if not color:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def log_file_path(config, now=None):
    """logs/<script.log_file_name>-<YYYYmmddHHMMSS>.log (script.log_dir overrides the folder)."""
    script_cfg = config.get("script", {}) or {}
    base_name = script_cfg.get("log_file_name") or "socialagent"
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    log_dir = script_cfg.get("log_dir") or LOGS_DIR
    os.makedirs(log_dir, exist_ok=True)
    return os.path.join(log_dir, f"{base_name}-{stamp}.log")


def setup_logging(config, console=False, debug=False):
    """
    Sets up the logging configuration based on provided settings.

    Args:
        config (dict): The configuration dictionary containing script settings.
        console (bool): If True, log to the terminal (colored) instead of a file.
        debug (bool): If True, set the logging level to DEBUG; otherwise, INFO.
    """
    if console:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        destination = "console"
    else:
        path = log_file_path(config)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        destination = f"file: {path}"

    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, handlers=[handler])

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialized (%s).", destination)


def log_startup_info(args, config):
    """
    Log startup information, including arguments and which platforms are configured.

    Secrets are never logged, only whether a section has client credentials.
    """
    logger.info("#" * 80)
    logger.info("New instance of the Social Media Agent started.")
    logger.info("TIME: %s", datetime.now())
    logger.info("Startup Parameters:")

    # Log all argument values dynamically
    for arg, value in vars(args).items():
        logger.info(f"  ARG - {arg}: {value}")

    logger.info("Platform Configurations:")
    for platform, id_key in (("facebook", "app_id"), ("instagram", "app_id"), ("tiktok", "client_key")):
        section = config.get(platform, {}) or {}
        logger.info(f"  PLATFORM - {platform}: configured={bool(section.get(id_key))}")

    logger.info("#" * 80)


def release_file(path):
    """Delete an uploaded file; a file that is already gone is not an error."""
    try:
        Path(path).unlink(missing_ok=True)
        logger.debug("Released %s", path)
    except OSError as e:
        logger.error("Could not delete %s: %s", path, e)

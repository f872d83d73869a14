"""
settings.py — resolves the server configuration once at startup.

Precedence (lowest first): built-in defaults, DROP_* environment variables,
command-line flags, JSON config file. Config file values only win when they
are non-empty strings or positive numbers.
"""
import argparse
import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Sequence

log = logging.getLogger(__name__)

DEFAULT_PORT           = "8080"
DEFAULT_DIR            = "./uploads"
DEFAULT_CONFIG         = "./config.json"
DEFAULT_EXPIRY_HOURS   = 2
DEFAULT_SWEEP_INTERVAL = 60.0          # seconds
DEFAULT_RATE_LIMIT     = "30 per minute"


class SettingsError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: str = DEFAULT_PORT
    work_dir: Path = Path(DEFAULT_DIR)
    upload_dir: Path = Path(DEFAULT_DIR)
    expiry_hours: float = DEFAULT_EXPIRY_HOURS
    sweep_interval: float = DEFAULT_SWEEP_INTERVAL
    max_upload_mb: int = 0                       # 0 = unlimited
    upload_rate_limit: str = DEFAULT_RATE_LIMIT  # "" disables
    config_file: str = DEFAULT_CONFIG

    @property
    def expiry_seconds(self) -> float:
        return max(self.expiry_hours, 0) * 3600


# ─────────────────────────────────────────────────────────────
# FLAGS
# ─────────────────────────────────────────────────────────────
def build_parser(prog: str = "drop") -> argparse.ArgumentParser:
    env = os.environ.get
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Local file server with automatic expiry of uploaded files.",
    )
    parser.add_argument("--host", default=env("DROP_HOST", "0.0.0.0"),
                        help="Interface to bind")
    parser.add_argument("--port", type=int, default=env("DROP_PORT", DEFAULT_PORT),
                        help="Server port")
    parser.add_argument("--workdir", default=env("DROP_WORK_DIR", DEFAULT_DIR),
                        help="Directory served for browsing and swept for expired files")
    parser.add_argument("--uploaddir", default=env("DROP_UPLOAD_DIR", DEFAULT_DIR),
                        help="Directory uploaded files are written to")
    parser.add_argument("--config", default=env("DROP_CONFIG", DEFAULT_CONFIG),
                        help="JSON config file (values override flags)")
    parser.add_argument("--expiry", type=float,
                        default=env("DROP_EXPIRY_HOURS", str(DEFAULT_EXPIRY_HOURS)),
                        help="File expiry in hours (0 disables expiry)")
    parser.add_argument("--sweep-interval", type=float, default=DEFAULT_SWEEP_INTERVAL,
                        help="Seconds between cleanup passes")
    parser.add_argument("--max-upload-mb", type=int, default=0,
                        help="Reject upload requests larger than this (0 = unlimited)")
    parser.add_argument("--upload-rate-limit", default=DEFAULT_RATE_LIMIT,
                        help='Per-client upload limit, e.g. "30 per minute" ("" disables)')
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


# ─────────────────────────────────────────────────────────────
# CONFIG FILE
# ─────────────────────────────────────────────────────────────
def load_config_file(filename: str) -> dict:
    with open(filename, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError("config file must contain a JSON object")
    return data


def _positive(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def apply_config_file(settings: Settings, data: dict) -> Settings:
    changes = {}
    port = data.get("port")
    if isinstance(port, int) and not isinstance(port, bool) and port > 0:
        port = str(port)
    if isinstance(port, str) and port.isdigit():
        changes["port"] = port
    for key, field in (("workdir", "work_dir"), ("uploaddir", "upload_dir")):
        value = data.get(key)
        if isinstance(value, str) and value:
            changes[field] = Path(value)
    if _positive(data.get("file_expiry_hours")):
        changes["expiry_hours"] = data["file_expiry_hours"]
    if _positive(data.get("max_upload_mb")):
        changes["max_upload_mb"] = int(data["max_upload_mb"])
    rate = data.get("upload_rate_limit")
    if isinstance(rate, str) and rate:
        changes["upload_rate_limit"] = rate
    return replace(settings, **changes)


def parse_args(argv: Optional[Sequence[str]] = None, prog: str = "drop") -> argparse.Namespace:
    return build_parser(prog).parse_args(list(argv) if argv is not None else None)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def resolve_settings(args: argparse.Namespace) -> Settings:
    """Build ``Settings`` from parsed flags, then merge the config file."""
    settings = Settings(
        host=args.host,
        port=str(args.port),
        work_dir=Path(args.workdir),
        upload_dir=Path(args.uploaddir),
        expiry_hours=args.expiry,
        sweep_interval=args.sweep_interval,
        max_upload_mb=max(args.max_upload_mb, 0),
        upload_rate_limit=args.upload_rate_limit,
        config_file=args.config,
    )

    if settings.config_file:
        try:
            settings = apply_config_file(settings, load_config_file(settings.config_file))
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            log.warning("could not load config file %s: %s", settings.config_file, e)
    return settings


# ─────────────────────────────────────────────────────────────
# DIRECTORIES
# ─────────────────────────────────────────────────────────────
def prepare_directories(settings: Settings) -> Settings:
    """Create the work and upload directories and return absolute paths."""
    for label, folder in (("work", settings.work_dir), ("upload", settings.upload_dir)):
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SettingsError(f"cannot create {label} directory {folder}: {e}") from e
    return replace(
        settings,
        work_dir=settings.work_dir.resolve(),
        upload_dir=settings.upload_dir.resolve(),
    )

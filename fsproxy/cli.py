"""
Run the signed download proxy.

Usage:
    fsproxy --address https://files.example.com --token SECRET \
        --public-address https://dl.example.com --port 5243
    fsproxy --https --cert server.crt --key server.key
    fsproxy --version

Every flag falls back to the matching environment variable (or .env entry):
BACKEND_ADDRESS, BACKEND_TOKEN, PUBLIC_ADDRESS, DISABLE_SIGN, PORT, HTTPS,
CERT_FILE, KEY_FILE.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from fsproxy import __version__
from fsproxy.core.config import Settings
from fsproxy.core.logging import setup_logging
from fsproxy.main import create_app

logger = structlog.get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fsproxy",
        description="Signed-URL download proxy for a private file-storage backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--port", type=int, default=None, help="Listen port (default 5243)")
    parser.add_argument("--https", action="store_true", default=None, help="Serve over TLS")
    parser.add_argument("--cert", dest="cert_file", default=None, help="TLS certificate file (default server.crt)")
    parser.add_argument("--key", dest="key_file", default=None, help="TLS private key file (default server.key)")
    parser.add_argument("--address", dest="backend_address", default=None, help="Storage backend address, no trailing slash")
    parser.add_argument("--token", dest="backend_token", default=None, help="Backend API token, also the signing secret")
    parser.add_argument("--public-address", default=None, help="Public address of this proxy")
    parser.add_argument(
        "--disable-sign",
        action="store_true",
        default=None,
        help="Disable signature verification. Anyone who knows a path can then fetch it.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {
        key: value
        for key, value in vars(args).items()
        if key != "version" and value is not None
    }
    return Settings(**overrides)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.version:
        print(f"Version: {__version__}")
        return 0

    settings = build_settings(args)
    setup_logging(settings.log_level, json_logs=settings.log_json)
    logger.info("fsproxy.starting", version=__version__, port=settings.port, https=settings.https)

    ssl_options: dict[str, Any] = {}
    if settings.https:
        for label, path in (("cert", settings.cert_file), ("key", settings.key_file)):
            if not Path(path).is_file():
                logger.error("fsproxy.tls_file_missing", kind=label, path=path)
                return 1
        ssl_options = {"ssl_certfile": settings.cert_file, "ssl_keyfile": settings.key_file}

    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
        **ssl_options,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

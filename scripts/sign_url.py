#!/usr/bin/env python3
"""Print a signed download URL for a file path.

Usage:
    python scripts/sign_url.py /movies/a.mkv
    python scripts/sign_url.py /movies/a.mkv --ttl 3600
    python scripts/sign_url.py /movies/a.mkv --ttl 0      # never expires

Environment variables:
    BACKEND_TOKEN   - Required. Shared secret used for signing.
    PUBLIC_ADDRESS  - Proxy public address to prefix (default: print path only)
"""

from __future__ import annotations

import argparse
import sys
from urllib.parse import quote, urlencode

from fsproxy.core.config import get_settings
from fsproxy.core.security import SignatureCodec


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sign a proxy download path")
    parser.add_argument("path", help="File path as stored in the backend, e.g. /movies/a.mkv")
    parser.add_argument("--ttl", type=int, default=0, help="Seconds until expiry; 0 never expires")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    if not settings.backend_token:
        print("Error: BACKEND_TOKEN environment variable is required", file=sys.stderr)
        return 1

    path = args.path if args.path.startswith("/") else f"/{args.path}"
    sign = SignatureCodec(settings.backend_token).sign_for(path, args.ttl)
    print(f"{settings.public_address}{quote(path)}?{urlencode({'sign': sign})}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

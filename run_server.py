#!/usr/bin/env python3
"""Launcher for the keychat Flask + Socket.IO server."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Make the keychat package importable when run from a checkout
BASE_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(BASE_DIR))

from keychat import config  # noqa: E402
from keychat.database import create_database  # noqa: E402
from keychat.server import create_app, get_socketio  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Start the keychat server (SQLite locally, PostgreSQL when DATABASE_URL is set)",
    )
    parser.add_argument("--host", default=config.HOST, help=f"Interface to bind (default: {config.HOST})")
    parser.add_argument("--port", default=config.PORT, type=int, help=f"TCP port (default: {config.PORT})")
    parser.add_argument(
        "--db-path",
        default=str(config.DB_PATH),
        help="SQLite file used when DATABASE_URL is not set",
    )
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode and DEBUG logging")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else config.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    database = create_database(config.DATABASE_URL, Path(args.db_path))
    app = create_app(database)

    banner = "=" * 60
    print(banner)
    print(" keychat - real-time chat")
    print(banner)
    print(f"Backend: {database.name}")
    print(f"Listening on http://{args.host}:{args.port}\n")

    try:
        get_socketio(app).run(
            app,
            host=args.host,
            port=args.port,
            debug=args.debug,
            allow_unsafe_werkzeug=True,
        )
    finally:
        database.close()


if __name__ == "__main__":
    main()

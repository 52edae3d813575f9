"""Central configuration for the keychat server."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))

BASE_DIR = Path(__file__).resolve().parent

DATABASE_URL: Optional[str] = os.environ.get("DATABASE_URL") or None
DB_PATH = Path(os.environ.get("KEYCHAT_DB_PATH", "local.db"))

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))

PUBLIC_DIR = Path(os.environ.get("KEYCHAT_PUBLIC_DIR", BASE_DIR / "public"))
UPLOADS_DIR = Path(os.environ.get("KEYCHAT_UPLOADS_DIR", "uploads"))
UPLOADS_URL_PREFIX = "/uploads"

ONLINE_LIMIT = int(os.environ.get("KEYCHAT_ONLINE_LIMIT", "4"))

PG_SSLMODE = os.environ.get("KEYCHAT_PG_SSLMODE", "prefer")
PG_POOL_MIN = int(os.environ.get("KEYCHAT_PG_POOL_MIN", "1"))
PG_POOL_MAX = int(os.environ.get("KEYCHAT_PG_POOL_MAX", "10"))
PG_TIMEOUT = float(os.environ.get("KEYCHAT_PG_TIMEOUT", "30"))

SOCKETIO_ASYNC_MODE: Optional[str] = os.environ.get("KEYCHAT_SOCKETIO_ASYNC_MODE") or None
LOG_LEVEL = os.environ.get("KEYCHAT_LOG_LEVEL", "INFO").upper()


def ensure_directories(*paths: Path) -> None:
    """Create ``paths`` (and parents) if they are missing."""

    for path in paths:
        Path(path).mkdir(parents=True, exist_ok=True)

"""In-memory registry of announced users and their live connections."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, List, Optional

from . import config

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Map of ``username -> connection id`` holding at most ``capacity`` entries.

    Announcements past capacity are dropped without telling the caller.
    Entries are removed by connection id because a disconnect carries no
    username.
    """

    def __init__(self, capacity: int = config.ONLINE_LIMIT) -> None:
        self.capacity = capacity
        self._entries: Dict[str, str] = {}
        self._lock = Lock()

    def add(self, username: str, connection_id: str) -> bool:
        """Register ``username`` for ``connection_id``; False when full."""

        with self._lock:
            if len(self._entries) >= self.capacity:
                logger.warning(
                    "Presence full (%d/%d), dropping announcement for %r",
                    len(self._entries),
                    self.capacity,
                    username,
                )
                return False
            self._entries[username] = connection_id
        logger.info("User %r online on %s", username, connection_id)
        return True

    def remove_connection(self, connection_id: str) -> List[str]:
        """Drop every entry owned by ``connection_id``; return the usernames removed."""

        with self._lock:
            removed = [name for name, sid in self._entries.items() if sid == connection_id]
            for name in removed:
                del self._entries[name]
        for name in removed:
            logger.info("User %r offline", name)
        return removed

    def usernames(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def connection_for(self, username: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(username)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, username: object) -> bool:
        with self._lock:
            return username in self._entries

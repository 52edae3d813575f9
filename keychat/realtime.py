"""Socket.IO presence, typing and message broadcast."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from flask import request
from flask_socketio import SocketIO, emit

from .presence import PresenceRegistry

logger = logging.getLogger(__name__)

# Event names shared with the browser client.
NEW_MESSAGE = "newMessage"
UPDATE_ONLINE = "updateOnline"
USER_ONLINE = "userOnline"
USER_TYPING = "userTyping"


class ChatEvents:
    """Owns the presence registry and fans events out to connected clients."""

    def __init__(self, socketio: SocketIO, registry: Optional[PresenceRegistry] = None) -> None:
        self.socketio = socketio
        self.registry = registry if registry is not None else PresenceRegistry()

    def register_handlers(self) -> None:
        self.socketio.on_event("connect", self._on_connect)
        self.socketio.on_event(USER_ONLINE, self._on_user_online)
        self.socketio.on_event(USER_TYPING, self._on_user_typing)
        self.socketio.on_event("disconnect", self._on_disconnect)

    # ------------------------------------------------------------------
    # Outbound events
    # ------------------------------------------------------------------

    def broadcast_message(self, sender: str, message: str) -> dict:
        payload = {
            "sender": sender,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self.socketio.emit(NEW_MESSAGE, payload)
        return payload

    def broadcast_online(self) -> None:
        self.socketio.emit(UPDATE_ONLINE, self.registry.usernames())

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    def _on_connect(self, auth=None):
        logger.debug("Socket connected: %s", request.sid)

    def _on_user_online(self, username):
        if not isinstance(username, str) or not username:
            logger.warning("Ignoring announcement with invalid username %r", username)
            return
        if self.registry.add(username, request.sid):
            self.broadcast_online()

    def _on_user_typing(self, username):
        # The sender is not checked against the registry.
        emit(USER_TYPING, username, broadcast=True, include_self=False)

    def _on_disconnect(self, reason=None):
        sid = request.sid
        logger.debug("Socket disconnected: %s", sid)
        if self.registry.remove_connection(sid):
            self.broadcast_online()

"""Flask + Socket.IO application for the keychat service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, send_from_directory
from flask_socketio import SocketIO

from . import config
from .database import Database, DatabaseError, IntegrityError, create_database
from .models import Message, User
from .presence import PresenceRegistry
from .realtime import ChatEvents
from .uploads import save_profile_picture

logger = logging.getLogger(__name__)

_FALSY_STRINGS = {"", "0", "false", "no", "off", "null", "undefined"}


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def create_app(
    database: Optional[Database] = None,
    *,
    public_dir: Path = config.PUBLIC_DIR,
    uploads_dir: Path = config.UPLOADS_DIR,
    online_limit: int = config.ONLINE_LIMIT,
    async_mode: Optional[str] = config.SOCKETIO_ASYNC_MODE,
) -> Flask:
    public_dir = Path(public_dir).resolve()
    uploads_dir = Path(uploads_dir).resolve()
    config.ensure_directories(public_dir, uploads_dir)

    app = Flask(__name__, static_folder=str(public_dir), static_url_path="")
    db = database or create_database()

    socketio = SocketIO(app, cors_allowed_origins="*", async_mode=async_mode)
    events = ChatEvents(socketio, PresenceRegistry(capacity=online_limit))
    events.register_handlers()
    app.extensions["keychat.events"] = events
    app.extensions["keychat.database"] = db

    # ---------------------------------------------------------------
    # Static content
    # ---------------------------------------------------------------

    @app.get("/")
    def root():
        if (public_dir / "index.html").exists():
            return send_from_directory(public_dir, "index.html")
        return jsonify({"message": "keychat API"})

    @app.get(f"{config.UPLOADS_URL_PREFIX}/<path:filename>")
    def uploaded_file(filename: str):
        return send_from_directory(uploads_dir, filename)

    @app.get("/healthz")
    def healthcheck():
        return jsonify(
            {
                "status": "ok",
                "backend": db.name,
                "database": db.ping(),
                "online": len(events.registry),
            }
        )

    # ---------------------------------------------------------------
    # Authentication
    # ---------------------------------------------------------------

    @app.post("/register")
    def register():
        payload = _payload()
        username = payload.get("username") or ""
        password = payload.get("password") or ""
        usb_key = payload.get("usb_key") or None

        if not username or not password:
            return (
                jsonify({"success": False, "message": "username and password are required"}),
                400,
            )

        try:
            profile_pic = save_profile_picture(request.files.get("profile_pic"), uploads_dir)
        except OSError:
            logger.exception("Could not store profile picture for %r", username)
            return jsonify({"success": False, "message": "Registration failed"}), 500

        try:
            db.execute(
                "INSERT INTO users(username, password, profile_pic, usb_key) VALUES (?, ?, ?, ?)",
                (username, password, profile_pic, usb_key),
            )
        except IntegrityError:
            logger.info("Registration rejected, username %r exists", username)
            return jsonify({"success": False, "message": "Username exists"}), 409
        except DatabaseError:
            logger.exception("Registration failed for %r", username)
            return jsonify({"success": False, "message": "Registration failed"}), 500

        return jsonify({"success": True})

    @app.post("/login")
    def login():
        payload = _payload()
        username = payload.get("username") or ""
        password = payload.get("password") or ""
        usb_present = _is_truthy(payload.get("usb_present"))

        try:
            rows = db.query(
                "SELECT * FROM users WHERE username = ? AND password = ?",
                (username, password),
            )
        except DatabaseError:
            logger.exception("Login lookup failed")
            return jsonify({"success": False, "message": "Server error"}), 500

        if not rows:
            return jsonify({"success": False, "message": "Invalid login"}), 401

        user = User.from_row(rows[0])
        if user.requires_usb and not usb_present:
            return jsonify({"success": False, "message": "USB required"}), 403

        return jsonify({"success": True, "user": user.to_dict()})

    # ---------------------------------------------------------------
    # Messaging
    # ---------------------------------------------------------------

    @app.get("/messages")
    def list_messages():
        try:
            rows = db.query("SELECT * FROM messages ORDER BY timestamp ASC, id ASC")
        except DatabaseError:
            logger.exception("Could not load message history")
            return jsonify({"success": False, "message": "Server error"}), 500
        return jsonify([Message.from_row(row).to_dict() for row in rows])

    @app.post("/message")
    def post_message():
        payload = _payload()
        sender = payload.get("sender") or ""
        message = payload.get("message") or ""

        if not sender or not message:
            return (
                jsonify({"success": False, "message": "sender and message are required"}),
                400,
            )

        try:
            db.execute(
                "INSERT INTO messages(sender, message) VALUES (?, ?)",
                (sender, message),
            )
        except DatabaseError:
            logger.exception("Could not store message from %r", sender)
            return jsonify({"success": False}), 500

        events.broadcast_message(sender, message)
        return jsonify({"success": True})

    return app


def get_socketio(app: Flask) -> SocketIO:
    return app.extensions["socketio"]


if __name__ == "__main__":
    api = create_app()
    get_socketio(api).run(api, host=config.HOST, port=config.PORT, allow_unsafe_werkzeug=True)

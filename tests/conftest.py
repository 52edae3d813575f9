from pathlib import Path

import pytest

from keychat.database import SQLiteDatabase, create_database
from keychat.server import create_app, get_socketio


@pytest.fixture
def database(tmp_path: Path) -> SQLiteDatabase:
    return create_database(None, tmp_path / "chat.db")


@pytest.fixture
def app(database, tmp_path: Path):
    flask_app = create_app(
        database=database,
        public_dir=tmp_path / "public",
        uploads_dir=tmp_path / "uploads",
        async_mode="threading",
    )
    flask_app.config.update({"TESTING": True})
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def socketio(app):
    return get_socketio(app)


@pytest.fixture
def connect_socket(app, socketio):
    clients = []

    def _connect():
        sock = socketio.test_client(app)
        clients.append(sock)
        return sock

    yield _connect
    for sock in clients:
        if sock.is_connected():
            sock.disconnect()

def _events(sock, name):
    return [event["args"][0] for event in sock.get_received() if event["name"] == name]


def test_announce_broadcasts_online_list(connect_socket):
    alice = connect_socket()
    bob = connect_socket()

    alice.emit("userOnline", "alice")

    assert _events(alice, "updateOnline") == [["alice"]]
    assert _events(bob, "updateOnline") == [["alice"]]


def test_connect_alone_does_not_register(app, connect_socket):
    connect_socket()
    assert len(app.extensions["keychat.events"].registry) == 0


def test_fifth_user_is_silently_dropped(app, connect_socket):
    sockets = [connect_socket() for _ in range(5)]
    for i, sock in enumerate(sockets[:4]):
        sock.emit("userOnline", f"user{i}")
    for sock in sockets:
        sock.get_received()

    sockets[4].emit("userOnline", "user4")

    registry = app.extensions["keychat.events"].registry
    assert len(registry) == 4
    assert "user4" not in registry
    for sock in sockets:
        assert _events(sock, "updateOnline") == []


def test_disconnect_of_announced_user_broadcasts(connect_socket):
    alice = connect_socket()
    bob = connect_socket()
    alice.emit("userOnline", "alice")
    bob.emit("userOnline", "bob")
    bob.get_received()

    alice.disconnect()

    assert _events(bob, "updateOnline") == [["bob"]]


def test_disconnect_without_announce_is_silent(connect_socket):
    alice = connect_socket()
    lurker = connect_socket()
    alice.emit("userOnline", "alice")
    alice.get_received()

    lurker.disconnect()

    assert _events(alice, "updateOnline") == []


def test_typing_reaches_everyone_but_sender(connect_socket):
    alice = connect_socket()
    bob = connect_socket()
    carol = connect_socket()

    alice.emit("userTyping", "alice")

    assert _events(alice, "userTyping") == []
    assert _events(bob, "userTyping") == ["alice"]
    assert _events(carol, "userTyping") == ["alice"]


def test_typing_does_not_require_announcement(app, connect_socket):
    ghost = connect_socket()
    bob = connect_socket()

    ghost.emit("userTyping", "nobody-registered")

    assert _events(bob, "userTyping") == ["nobody-registered"]
    assert len(app.extensions["keychat.events"].registry) == 0


def test_non_string_username_is_ignored(app, connect_socket):
    alice = connect_socket()

    alice.emit("userOnline", ["x"])
    alice.emit("userOnline", "")

    assert _events(alice, "updateOnline") == []
    assert len(app.extensions["keychat.events"].registry) == 0

    alice.emit("userOnline", "alice")
    assert _events(alice, "updateOnline") == [["alice"]]

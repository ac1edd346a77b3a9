from conftest import SAMPLE_CSV


def _events(sio_client, name):
    return [pkt["args"][0] if pkt["args"] else None for pkt in sio_client.get_received() if pkt["name"] == name]


def _new_room(client):
    res = client.post("/api/rooms")
    assert res.status_code == 200
    return res.get_json()["roomCode"]


def test_ping(client):
    res = client.get("/api/ping")
    assert res.status_code == 200
    assert res.get_json() == {"message": "pong"}


def test_room_lookup(client):
    code = _new_room(client)

    data = client.get(f"/api/rooms/{code}").get_json()
    assert data["roomCode"] == code
    assert data["state"]["round"] == "start"
    assert data["roster"] == []

    assert client.get("/api/rooms/nope").status_code == 404


def test_join_sends_state_roster_and_chat(client, sio_client):
    code = _new_room(client)

    ack = sio_client.emit("room:join", {"roomCode": code, "clientId": "c1"}, callback=True)

    assert ack["ok"] is True
    received = sio_client.get_received()
    names = [pkt["name"] for pkt in received]
    assert "room:state" in names
    assert "room:roster" in names
    assert "chat:sync" in names
    roster = [pkt for pkt in received if pkt["name"] == "room:roster"][-1]["args"][0]
    assert roster[0]["id"] == ack["id"]


def test_unknown_room_is_an_error(sio_client):
    ack = sio_client.emit("room:join", {"roomCode": "missing", "clientId": "c1"}, callback=True)

    assert ack == {"ok": False}
    assert _events(sio_client, "room:error") == [{"error": "room_not_found"}]


def test_pinned_room_exists_on_demand(sio_client):
    ack = sio_client.emit("room:join", {"roomCode": "default", "clientId": "c1"}, callback=True)
    assert ack["ok"] is True


def test_custom_game_over_socket(client, sio_client):
    code = _new_room(client)
    sio_client.emit("room:join", {"roomCode": code, "clientId": "c1"})
    sio_client.get_received()

    ack = sio_client.emit(
        "game:start",
        {"roomCode": code, "options": {"makeMeHost": True}, "customData": SAMPLE_CSV},
        callback=True,
    )
    assert ack == {"ok": True}
    received = sio_client.get_received()
    state = [pkt["args"][0] for pkt in received if pkt["name"] == "room:state"][-1]
    assert state["round"] == "jeopardy"
    assert state["epNum"] == "Custom"
    assert "playCategoryReveal" in [pkt["name"] for pkt in received]

    ack = sio_client.emit("game:pick", {"roomCode": code, "coord": "1_1"}, callback=True)
    assert ack == {"ok": True}
    clue = _events(sio_client, "playClueText")
    assert clue == [{"coord": "1_1", "text": "q1"}]


def test_bad_custom_data_over_socket(client, sio_client):
    code = _new_room(client)
    sio_client.emit("room:join", {"roomCode": code, "clientId": "c1"})
    sio_client.get_received()

    ack = sio_client.emit("game:start", {"roomCode": code, "options": {}, "customData": "x,y\n1,2"}, callback=True)

    assert ack == {"ok": False}
    assert _events(sio_client, "room:error") == [{"error": "invalid_custom_data"}]


def test_start_without_episodes_fails(client, sio_client):
    code = _new_room(client)
    sio_client.emit("room:join", {"roomCode": code, "clientId": "c1"})
    sio_client.get_received()

    ack = sio_client.emit("game:start", {"roomCode": code, "options": {}}, callback=True)

    assert ack == {"ok": False}
    assert _events(sio_client, "room:error") == [{"error": "start_failed"}]


def test_disconnect_marks_player(flask_app, client, sio_client):
    code = _new_room(client)
    socketio = flask_app.extensions["socketio"]
    other = socketio.test_client(flask_app)
    other.emit("room:join", {"roomCode": code, "clientId": "c2"})
    sio_client.emit("room:join", {"roomCode": code, "clientId": "c1"})
    sio_client.get_received()

    other.disconnect()

    roster = _events(sio_client, "room:roster")[-1]
    assert sum(1 for p in roster if not p["connected"]) == 1


def test_sockets_from_another_room_cannot_play(flask_app, client, sio_client):
    code = _new_room(client)
    elsewhere = _new_room(client)
    socketio = flask_app.extensions["socketio"]
    player = socketio.test_client(flask_app)
    player.emit("room:join", {"roomCode": code, "clientId": "c2"})
    player.emit("game:start", {"roomCode": code, "options": {}, "customData": SAMPLE_CSV})
    sio_client.emit("room:join", {"roomCode": elsewhere, "clientId": "c1"})

    ack = sio_client.emit("game:pick", {"roomCode": code, "coord": "1_1"}, callback=True)
    assert ack == {"ok": False}
    ack = sio_client.emit("game:skip", {"roomCode": code}, callback=True)
    assert ack == {"ok": False}
    assert client.get(f"/api/rooms/{code}").get_json()["state"]["currentQ"] == ""

    ack = player.emit("game:pick", {"roomCode": code, "coord": "1_1"}, callback=True)
    assert ack == {"ok": True}

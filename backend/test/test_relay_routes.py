"""릴레이 FastAPI 앱 테스트 (TestClient)."""

import pytest
from fastapi.testclient import TestClient

from app import app


@pytest.fixture
def client(room_manager):
    with TestClient(app) as test_client:
        yield test_client


def join(ws, room, name):
    ws.send_json({"type": "join-room", "data": {"room": room, "displayName": name}})
    return ws.receive_json()


def test_root(client):
    assert client.get("/").json() == {"status": "ok", "service": "peercall Signaling Relay"}


def test_health(client):
    body = client.get("/api/health").json()

    assert body["status"] == "ok"
    assert body["rooms"] == 0


def test_create_room_id(client):
    response = client.post("/api/rooms")

    assert response.status_code == 201
    room_id = response.json()["room_id"]
    assert len(room_id) == 6
    assert room_id.isalnum()


def test_unknown_room_is_404(client):
    assert client.get("/api/rooms/NOROOM1").status_code == 404


def test_join_and_roster(client):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        alice_joined = join(alice, "ROOM01", "alice")
        assert alice_joined["type"] == "room-joined"
        assert alice_joined["data"]["roomId"] == "ROOM01"
        assert alice_joined["data"]["selfName"] == "alice"
        assert alice_joined["data"]["userCount"] == 1
        assert alice_joined["data"]["users"] == []
        alice_id = alice_joined["data"]["selfId"]

        bob_joined = join(bob, "ROOM01", "bob")
        assert bob_joined["data"]["userCount"] == 2
        assert bob_joined["data"]["users"] == [{"id": alice_id, "name": "alice"}]
        bob_id = bob_joined["data"]["selfId"]

        assert alice.receive_json() == {"type": "user-joined", "data": {"id": bob_id, "name": "bob"}}

        room = client.get("/api/rooms/ROOM01").json()
        assert room["user_count"] == 2
        assert room["is_full"] is True
        listed = client.get("/api/rooms").json()
        assert listed["count"] == 1
        assert listed["rooms"][0]["room_id"] == "ROOM01"


def test_third_participant_rejected(client):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b, \
            client.websocket_connect("/ws") as c:
        join(a, "ROOM02", "alice")
        join(b, "ROOM02", "bob")
        a.receive_json()  # user-joined

        rejected = join(c, "ROOM02", "carol")

        assert rejected == {"type": "error", "data": {"message": "Room is full"}}


def test_invalid_join_request(client):
    with client.websocket_connect("/ws") as ws:
        response = join(ws, "ROOM03", "al")

        assert response["type"] == "error"
        assert response["data"]["message"] == "Username must be at least 3 characters"


def test_message_before_join(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "leave-call", "data": {}})

        assert ws.receive_json() == {"type": "error", "data": {"message": "Join a room first"}}


def test_invalid_json(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")

        response = ws.receive_json()
        assert response["type"] == "error"
        assert response["data"]["message"].startswith("Invalid message")


def test_offer_forwarded_with_from(client):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        alice_id = join(alice, "ROOM04", "alice")["data"]["selfId"]
        bob_id = join(bob, "ROOM04", "bob")["data"]["selfId"]
        alice.receive_json()  # user-joined

        bob.send_json({
            "type": "offer",
            "data": {"target": alice_id, "sdpOffer": {"sdp": "v=0", "type": "offer"}},
        })

        assert alice.receive_json() == {
            "type": "offer",
            "data": {"from": bob_id, "sdpOffer": {"sdp": "v=0", "type": "offer"}},
        }

        alice.send_json({
            "type": "ice-candidate",
            "data": {"target": bob_id, "candidate": {"candidate": "candidate:x", "sdpMid": "0", "sdpMLineIndex": 0}},
        })

        forwarded = bob.receive_json()
        assert forwarded["data"]["from"] == alice_id
        assert forwarded["data"]["candidate"]["sdpMid"] == "0"


def test_unknown_target(client):
    with client.websocket_connect("/ws") as alice:
        join(alice, "ROOM05", "alice")

        alice.send_json({
            "type": "answer",
            "data": {"target": "nobody", "sdpAnswer": {"sdp": "v=0", "type": "answer"}},
        })

        response = alice.receive_json()
        assert response["type"] == "error"
        assert "nobody" in response["data"]["message"]


def test_chat_broadcast_includes_sender(client):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        alice_id = join(alice, "ROOM06", "alice")["data"]["selfId"]
        join(bob, "ROOM06", "bob")
        alice.receive_json()  # user-joined

        alice.send_json({"type": "chat-message", "data": {"room": "ROOM06", "body": "   "}})
        alice.send_json({"type": "chat-message", "data": {"room": "ROOM06", "body": "  hello  "}})

        for ws in (alice, bob):
            message = ws.receive_json()
            assert message["type"] == "chat-message"
            assert message["data"]["senderId"] == alice_id
            assert message["data"]["senderName"] == "alice"
            assert message["data"]["body"] == "hello"
            assert message["data"]["timestamp"].endswith("+00:00")


def test_leave_call_notifies_others(client):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        join(alice, "ROOM07", "alice")
        bob_joined = join(bob, "ROOM07", "bob")
        alice.receive_json()  # user-joined

        bob.send_json({"type": "leave-call", "data": {}})

        assert alice.receive_json() == {
            "type": "user-left",
            "data": {"id": bob_joined["data"]["selfId"], "name": "bob"},
        }


def test_disconnect_notifies_others(client):
    with client.websocket_connect("/ws") as alice:
        join(alice, "ROOM08", "alice")
        with client.websocket_connect("/ws") as bob:
            bob_id = join(bob, "ROOM08", "bob")["data"]["selfId"]
            alice.receive_json()  # user-joined

        assert alice.receive_json() == {"type": "user-left", "data": {"id": bob_id, "name": "bob"}}

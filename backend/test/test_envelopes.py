"""시그널링 envelope 직렬화/해석 테스트."""

import json

import pytest

from peercall.shared.dto import ChatMessage, Participant
from peercall.shared.exceptions import EnvelopeError, SignalingError
from peercall.signaling import envelopes
from peercall.signaling.envelopes import (
    ChatRequest,
    IceCandidateInit,
    SessionDescription,
    dump_envelope,
    forward_from,
    make_chat,
    make_ice_candidate,
    make_leave,
    make_offer,
    make_room_joined,
    parse_envelope,
    to_json,
)


class TestParseEnvelope:
    def test_incoming_offer_uses_from(self):
        raw = json.dumps({
            "type": "offer",
            "data": {"from": "peer-b", "sdpOffer": {"sdp": "v=0", "type": "offer"}},
        })

        envelope = parse_envelope(raw)

        assert envelope.type == envelopes.OFFER
        assert envelope.data.sender == "peer-b"
        assert envelope.data.target is None
        assert envelope.data.sdp_offer == SessionDescription(sdp="v=0", type="offer")

    def test_room_joined(self):
        envelope = parse_envelope({
            "type": "room-joined",
            "data": {
                "roomId": "AB12CD",
                "selfId": "id-bob",
                "selfName": "bob",
                "userCount": 2,
                "users": [{"id": "id-alice", "name": "alice"}],
            },
        })

        assert envelope.data.room_id == "AB12CD"
        assert envelope.data.self_id == "id-bob"
        assert envelope.data.user_count == 2
        assert envelope.data.users == [Participant(id="id-alice", name="alice")]

    def test_ice_candidate_aliases(self):
        envelope = parse_envelope({
            "type": "ice-candidate",
            "data": {
                "from": "peer-a",
                "candidate": {"candidate": "candidate:1 1 udp 1 10.0.0.1 9 typ host", "sdpMid": "0", "sdpMLineIndex": 0},
            },
        })

        assert envelope.data.candidate.sdp_mid == "0"
        assert envelope.data.candidate.sdp_mline_index == 0

    def test_incoming_chat_is_chat_message(self):
        envelope = parse_envelope({
            "type": "chat-message",
            "data": {"senderId": "id-a", "senderName": "alice", "body": "hi", "timestamp": "2024-01-01T00:00:00+00:00"},
        })

        assert isinstance(envelope.data, ChatMessage)
        assert envelope.data.sender_name == "alice"

    def test_outgoing_chat_is_chat_request(self):
        envelope = parse_envelope({"type": "chat-message", "data": {"room": "AB12CD", "body": "hi"}})

        assert isinstance(envelope.data, ChatRequest)

    def test_leave_call_without_data(self):
        envelope = parse_envelope({"type": "leave-call"})

        assert envelope.type == envelopes.LEAVE_CALL

    @pytest.mark.parametrize("raw", [
        "not json",
        json.dumps({"type": "dance", "data": {}}),
        json.dumps({"type": "offer", "data": {"target": "x"}}),
        json.dumps(["offer"]),
    ])
    def test_invalid_frames_raise_envelope_error(self, raw):
        with pytest.raises(EnvelopeError):
            parse_envelope(raw)

    def test_envelope_error_is_signaling_error(self):
        assert issubclass(EnvelopeError, SignalingError)


class TestDumpEnvelope:
    def test_offer_wire_form(self):
        envelope = make_offer("peer-a", SessionDescription(sdp="v=0", type="offer"))

        assert dump_envelope(envelope) == {
            "type": "offer",
            "data": {"target": "peer-a", "sdpOffer": {"sdp": "v=0", "type": "offer"}},
        }

    def test_ice_candidate_wire_form(self):
        envelope = make_ice_candidate("peer-a", IceCandidateInit(candidate="candidate:x", sdp_mid="0", sdp_mline_index=1))

        assert dump_envelope(envelope)["data"] == {
            "target": "peer-a",
            "candidate": {"candidate": "candidate:x", "sdpMid": "0", "sdpMLineIndex": 1},
        }

    def test_leave_and_chat(self):
        assert dump_envelope(make_leave()) == {"type": "leave-call", "data": {}}
        assert dump_envelope(make_chat("AB12CD", "hi")) == {
            "type": "chat-message",
            "data": {"room": "AB12CD", "body": "hi"},
        }

    def test_room_joined_wire_form(self):
        bob = Participant(id="id-bob", name="bob")
        alice = Participant(id="id-alice", name="alice")

        data = dump_envelope(make_room_joined("AB12CD", bob, [alice], 2))["data"]

        assert data == {
            "roomId": "AB12CD",
            "selfId": "id-bob",
            "selfName": "bob",
            "userCount": 2,
            "users": [{"id": "id-alice", "name": "alice"}],
        }

    def test_forward_from_replaces_target(self):
        envelope = make_offer("peer-a", SessionDescription(sdp="v=0", type="offer"))

        forwarded = dump_envelope(forward_from(envelope, "peer-b"))

        assert forwarded["data"]["from"] == "peer-b"
        assert "target" not in forwarded["data"]
        # 원본은 그대로
        assert envelope.data.target == "peer-a"

    def test_to_json_parses_back(self):
        envelope = make_chat("AB12CD", "hello")

        assert parse_envelope(to_json(envelope)).data.body == "hello"

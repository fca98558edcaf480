"""시그널링 모듈.

릴레이와 주고받는 envelope 정의, WebSocket 채널, 입력값 검증을 제공합니다.
"""

from .channel import SignalingChannel
from .envelopes import (
    SignalingEnvelope,
    SessionDescription,
    IceCandidateInit,
    parse_envelope,
    dump_envelope,
    to_json,
    make_join,
    make_offer,
    make_answer,
    make_ice_candidate,
    make_leave,
    make_chat,
)
from .validation import validate_room_id, validate_display_name, generate_room_id

__all__ = [
    "SignalingChannel",
    "SignalingEnvelope",
    "SessionDescription",
    "IceCandidateInit",
    "parse_envelope",
    "dump_envelope",
    "to_json",
    "make_join",
    "make_offer",
    "make_answer",
    "make_ice_candidate",
    "make_leave",
    "make_chat",
    "validate_room_id",
    "validate_display_name",
    "generate_room_id",
]

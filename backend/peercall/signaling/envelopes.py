"""시그널링 메시지(envelope) 정의.

릴레이와 주고받는 모든 메시지는 하나의 WebSocket 위의 JSON 객체입니다::

    {"type": "<메시지 타입>", "data": {...}}

Message Types:
    join-room      (out)     {room, displayName}
    room-joined    (in)      {roomId, selfId, selfName, userCount, users: [{id, name}]}
    user-joined    (in)      {id, name}
    user-left      (in)      {id, name}
    offer          (out/in)  {target | from, sdpOffer: {sdp, type}}
    answer         (out/in)  {target | from, sdpAnswer: {sdp, type}}
    ice-candidate  (out/in)  {target | from, candidate: {candidate, sdpMid, sdpMLineIndex}}
    leave-call     (out)     {}
    chat-message   (out/in)  {room, body} | {senderId, senderName, body, timestamp}
    error          (in)      {message}

모델은 pydantic v2이며 필드는 snake_case, 직렬화는 camelCase alias를 사용합니다.
"""

import json
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..shared.dto import ChatMessage, Participant
from ..shared.exceptions import EnvelopeError

# Message type constants
JOIN_ROOM = "join-room"
ROOM_JOINED = "room-joined"
USER_JOINED = "user-joined"
USER_LEFT = "user-left"
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"
LEAVE_CALL = "leave-call"
CHAT_MESSAGE = "chat-message"
ERROR = "error"


# ============================================================
# Payloads
# ============================================================

class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class JoinPayload(_Payload):
    room: str
    display_name: str = Field(..., alias="displayName")


class RoomJoinedPayload(_Payload):
    room_id: str = Field(..., alias="roomId")
    self_id: str = Field(..., alias="selfId")
    self_name: str = Field(..., alias="selfName")
    user_count: int = Field(..., alias="userCount")
    users: List[Participant] = Field(default_factory=list, description="자신을 제외한 기존 참가자")


class SessionDescription(_Payload):
    """SDP offer/answer."""

    sdp: str
    type: Literal["offer", "answer"]


class IceCandidateInit(_Payload):
    """브라우저 RTCIceCandidateInit 형식의 ICE 후보."""

    candidate: str = ""
    sdp_mid: Optional[str] = Field(None, alias="sdpMid")
    sdp_mline_index: Optional[int] = Field(None, alias="sdpMLineIndex")


class _AddressedPayload(_Payload):
    # 보낼 때는 target, 받을 때는 릴레이가 채운 from
    target: Optional[str] = None
    sender: Optional[str] = Field(None, alias="from")


class OfferPayload(_AddressedPayload):
    sdp_offer: SessionDescription = Field(..., alias="sdpOffer")


class AnswerPayload(_AddressedPayload):
    sdp_answer: SessionDescription = Field(..., alias="sdpAnswer")


class IceCandidatePayload(_AddressedPayload):
    candidate: IceCandidateInit


class ChatRequest(_Payload):
    room: str
    body: str


class ErrorPayload(_Payload):
    message: str


class EmptyPayload(_Payload):
    pass


# ============================================================
# Envelopes
# ============================================================

class JoinRoomEnvelope(BaseModel):
    type: Literal["join-room"] = JOIN_ROOM
    data: JoinPayload


class RoomJoinedEnvelope(BaseModel):
    type: Literal["room-joined"] = ROOM_JOINED
    data: RoomJoinedPayload


class UserJoinedEnvelope(BaseModel):
    type: Literal["user-joined"] = USER_JOINED
    data: Participant


class UserLeftEnvelope(BaseModel):
    type: Literal["user-left"] = USER_LEFT
    data: Participant


class OfferEnvelope(BaseModel):
    type: Literal["offer"] = OFFER
    data: OfferPayload


class AnswerEnvelope(BaseModel):
    type: Literal["answer"] = ANSWER
    data: AnswerPayload


class IceCandidateEnvelope(BaseModel):
    type: Literal["ice-candidate"] = ICE_CANDIDATE
    data: IceCandidatePayload


class LeaveCallEnvelope(BaseModel):
    type: Literal["leave-call"] = LEAVE_CALL
    data: EmptyPayload = Field(default_factory=EmptyPayload)


class ChatMessageEnvelope(BaseModel):
    type: Literal["chat-message"] = CHAT_MESSAGE
    # 보낼 때는 ChatRequest, 릴레이에서 받을 때는 ChatMessage
    data: Union[ChatMessage, ChatRequest]


class ErrorEnvelope(BaseModel):
    type: Literal["error"] = ERROR
    data: ErrorPayload


SignalingEnvelope = Annotated[
    Union[
        JoinRoomEnvelope,
        RoomJoinedEnvelope,
        UserJoinedEnvelope,
        UserLeftEnvelope,
        OfferEnvelope,
        AnswerEnvelope,
        IceCandidateEnvelope,
        LeaveCallEnvelope,
        ChatMessageEnvelope,
        ErrorEnvelope,
    ],
    Field(discriminator="type"),
]

AddressedEnvelope = Union[OfferEnvelope, AnswerEnvelope, IceCandidateEnvelope]

_envelope_adapter = TypeAdapter(SignalingEnvelope)


def parse_envelope(raw: Union[str, bytes, dict]) -> SignalingEnvelope:
    """JSON 문자열/딕셔너리를 envelope 객체로 변환합니다.

    Raises:
        EnvelopeError: JSON이 아니거나, 알 수 없는 type이거나, payload가 맞지 않는 경우
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EnvelopeError(f"invalid json: {e}") from e
    try:
        return _envelope_adapter.validate_python(raw)
    except ValidationError as e:
        raise EnvelopeError(f"invalid envelope: {e.error_count()} error(s)") from e


def dump_envelope(envelope: BaseModel) -> dict:
    """envelope를 전송용 딕셔너리로 변환합니다."""
    return envelope.model_dump(by_alias=True, exclude_none=True)


def to_json(envelope: BaseModel) -> str:
    return envelope.model_dump_json(by_alias=True, exclude_none=True)


def forward_from(envelope: Any, sender_id: str) -> Any:
    """릴레이 전달용 사본: target을 지우고 from을 보낸 사람으로 채웁니다."""
    data = envelope.data.model_copy(update={"target": None, "sender": sender_id})
    return envelope.model_copy(update={"data": data})


# ============================================================
# Constructors
# ============================================================

def make_join(room: str, display_name: str) -> JoinRoomEnvelope:
    return JoinRoomEnvelope(data=JoinPayload(room=room, display_name=display_name))


def make_room_joined(room_id: str, self_participant: Participant, users: List[Participant], user_count: int) -> RoomJoinedEnvelope:
    return RoomJoinedEnvelope(data=RoomJoinedPayload(
        room_id=room_id,
        self_id=self_participant.id,
        self_name=self_participant.name,
        user_count=user_count,
        users=users,
    ))


def make_user_joined(participant: Participant) -> UserJoinedEnvelope:
    return UserJoinedEnvelope(data=participant)


def make_user_left(participant: Participant) -> UserLeftEnvelope:
    return UserLeftEnvelope(data=participant)


def make_offer(target: str, description: SessionDescription) -> OfferEnvelope:
    return OfferEnvelope(data=OfferPayload(target=target, sdp_offer=description))


def make_answer(target: str, description: SessionDescription) -> AnswerEnvelope:
    return AnswerEnvelope(data=AnswerPayload(target=target, sdp_answer=description))


def make_ice_candidate(target: str, candidate: IceCandidateInit) -> IceCandidateEnvelope:
    return IceCandidateEnvelope(data=IceCandidatePayload(target=target, candidate=candidate))


def make_leave() -> LeaveCallEnvelope:
    return LeaveCallEnvelope()


def make_chat(room: str, body: str) -> ChatMessageEnvelope:
    return ChatMessageEnvelope(data=ChatRequest(room=room, body=body))


def make_chat_broadcast(message: ChatMessage) -> ChatMessageEnvelope:
    return ChatMessageEnvelope(data=message)


def make_error(message: str) -> ErrorEnvelope:
    return ErrorEnvelope(data=ErrorPayload(message=message))

"""WebRTC 시그널링 WebSocket 라우터.

1:1 통화 클라이언트 사이에서 룸 입장/퇴장을 관리하고 offer/answer/ICE candidate,
채팅 메시지를 중계합니다. 릴레이는 SDP와 ICE 후보 내용을 해석하지 않습니다.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from peercall.relay import RoomManager
from peercall.shared.dto import ChatMessage
from peercall.shared.exceptions import EnvelopeError, InvalidJoinRequestError
from peercall.signaling import envelopes
from peercall.signaling.envelopes import (
    ChatRequest,
    dump_envelope,
    forward_from,
    make_chat_broadcast,
    make_error,
    make_room_joined,
    make_user_joined,
    make_user_left,
    parse_envelope,
)
from peercall.signaling.validation import validate_display_name, validate_room_id

logger = logging.getLogger(__name__)

router = APIRouter()

# 룸당 최대 참가자 수 (1:1 통화)
MAX_PARTICIPANTS = int(os.getenv("MAX_PARTICIPANTS", "2"))

# 글로벌 매니저 참조 (app.py에서 설정됨)
_room_manager: Optional[RoomManager] = None


def init_managers(room_manager: RoomManager):
    """매니저 인스턴스를 초기화합니다.

    app.py에서 호출하여 글로벌 매니저 참조를 설정합니다.
    """
    global _room_manager
    _room_manager = room_manager
    logger.info("[Relay] 시그널링 라우터 매니저 초기화 완료")


def get_room_manager() -> Optional[RoomManager]:
    return _room_manager


async def _send(websocket: WebSocket, envelope) -> None:
    await websocket.send_json(dump_envelope(envelope))


async def broadcast_to_room(room_id: str, envelope, exclude: Optional[List[str]] = None):
    """룸의 참가자에게 envelope를 전송합니다.

    전송에 실패한 참가자는 룸에서 제거하고 나머지에게 user-left를 알립니다.

    Args:
        room_id: 대상 룸 ID
        envelope: 전송할 envelope
        exclude: 받지 않을 참가자 ID 목록
    """
    exclude = exclude or []
    disconnected = []

    for peer in _room_manager.get_room_peers(room_id):
        if peer.peer_id in exclude:
            continue
        try:
            await _send(peer.websocket, envelope)
        except Exception as e:
            logger.error(f"[Relay] 피어 {peer.peer_id[:8]}에 브로드캐스트 중 오류: {e}")
            disconnected.append(peer.peer_id)

    for peer_id in disconnected:
        await _remove_peer(peer_id)


async def _remove_peer(peer_id: str) -> None:
    room_id = _room_manager.get_peer_room(peer_id)
    peer = _room_manager.leave_room(peer_id)
    if peer is None:
        return
    await broadcast_to_room(room_id, make_user_left(peer.participant))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """시그널링 WebSocket 엔드포인트.

    처리하는 메시지 타입:
        - join-room: 룸 입장 (room, displayName)
        - offer / answer / ice-candidate: target 참가자에게 중계
        - chat-message: 룸 전체(보낸 사람 포함)에 브로드캐스트
        - leave-call: 룸 퇴장
    """
    if _room_manager is None:
        logger.error("[Relay] 매니저가 초기화되지 않음")
        await websocket.close(code=1011, reason="Server not ready")
        return

    await websocket.accept()

    peer_id = str(uuid.uuid4())
    logger.info(f"[Relay] 피어 {peer_id[:8]} 연결됨")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                envelope = parse_envelope(raw)
            except EnvelopeError as e:
                logger.warning(f"[Relay] 피어 {peer_id[:8]} 잘못된 메시지: {e}")
                await _send(websocket, make_error(f"Invalid message: {e}"))
                continue

            message_type = envelope.type
            current_room = _room_manager.get_peer_room(peer_id)

            if message_type == envelopes.JOIN_ROOM:
                await _handle_join_room(websocket, peer_id, current_room, envelope.data)

            elif current_room is None:
                await _send(websocket, make_error("Join a room first"))

            elif message_type in (envelopes.OFFER, envelopes.ANSWER, envelopes.ICE_CANDIDATE):
                await _handle_forward(websocket, peer_id, current_room, envelope)

            elif message_type == envelopes.CHAT_MESSAGE:
                await _handle_chat(peer_id, current_room, envelope.data)

            elif message_type == envelopes.LEAVE_CALL:
                logger.info(f"[Relay] 피어 {peer_id[:8]} 통화 종료 요청")
                await _remove_peer(peer_id)

            else:
                logger.warning(f"[Relay] 처리할 수 없는 메시지 타입: {message_type}")
                await _send(websocket, make_error(f"Unsupported message type: {message_type}"))

    except WebSocketDisconnect:
        logger.info(f"[Relay] 피어 {peer_id[:8]} 연결 끊김")
    except Exception as e:
        logger.error(f"[Relay] 피어 {peer_id[:8]}의 WebSocket 연결 중 오류: {e}")
    finally:
        await _remove_peer(peer_id)
        logger.info(f"[Relay] 피어 {peer_id[:8]} 정리 완료")


async def _handle_join_room(websocket: WebSocket, peer_id: str, current_room: Optional[str], data):
    """룸 입장 처리."""
    if current_room is not None:
        await _send(websocket, make_error("Already in a room"))
        return

    try:
        room_id = validate_room_id(data.room)
        display_name = validate_display_name(data.display_name)
    except InvalidJoinRequestError as e:
        await _send(websocket, make_error(str(e)))
        return

    if _room_manager.get_room_count(room_id) >= MAX_PARTICIPANTS:
        logger.warning(f"[Relay] 룸 '{room_id}' 정원 초과 - 피어 {peer_id[:8]} 입장 거부")
        await _send(websocket, make_error("Room is full"))
        return

    others = [peer.participant for peer in _room_manager.get_other_peers(room_id, peer_id)]
    peer = _room_manager.join_room(room_id, peer_id, display_name, websocket)

    await _send(websocket, make_room_joined(
        room_id,
        peer.participant,
        others,
        _room_manager.get_room_count(room_id),
    ))
    await broadcast_to_room(room_id, make_user_joined(peer.participant), exclude=[peer_id])


async def _handle_forward(websocket: WebSocket, peer_id: str, room_id: str, envelope):
    """offer/answer/ice-candidate를 같은 룸의 target에게 전달합니다."""
    target_id = envelope.data.target
    target = _room_manager.get_peer(target_id) if target_id else None
    if target is None or _room_manager.get_peer_room(target_id) != room_id:
        logger.warning(f"[Relay] {envelope.type} 대상 없음: {target_id}")
        await _send(websocket, make_error(f"Target participant not found: {target_id}"))
        return

    try:
        await _send(target.websocket, forward_from(envelope, peer_id))
    except Exception as e:
        logger.error(f"[Relay] 피어 {target_id[:8]}에 {envelope.type} 전달 실패: {e}")
        await _remove_peer(target_id)
        return
    logger.debug(f"[Relay] {envelope.type} 전달: {peer_id[:8]} -> {target_id[:8]}")


async def _handle_chat(peer_id: str, room_id: str, data):
    """채팅 메시지에 발신자와 시각을 붙여 룸 전체에 브로드캐스트합니다."""
    if not isinstance(data, ChatRequest):
        return
    body = data.body.strip()
    if not body:
        return

    sender = _room_manager.get_peer(peer_id)
    message = ChatMessage(
        sender_id=peer_id,
        sender_name=sender.display_name,
        body=body,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    await broadcast_to_room(room_id, make_chat_broadcast(message))

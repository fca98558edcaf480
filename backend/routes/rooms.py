"""룸 대시보드 API 라우터.

활성 룸 목록, 새 룸 ID 발급, 룸 상세 조회 엔드포인트를 제공합니다.
"""

from fastapi import APIRouter, HTTPException

from peercall.signaling.validation import generate_room_id
from .signaling import MAX_PARTICIPANTS, get_room_manager

router = APIRouter(prefix="/api/rooms", tags=["rooms"])


def _require_room_manager():
    room_manager = get_room_manager()
    if room_manager is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return room_manager


@router.get("")
async def list_rooms():
    """활성 룸 목록을 조회합니다.

    Returns:
        dict: 룸 목록과 개수
    """
    rooms = _require_room_manager().get_room_list()
    return {"rooms": rooms, "count": len(rooms), "max_participants": MAX_PARTICIPANTS}


@router.post("", status_code=201)
async def create_room():
    """사용 중이지 않은 새 룸 ID를 발급합니다.

    룸은 첫 참가자가 join-room을 보낼 때 실제로 만들어집니다.
    """
    room_manager = _require_room_manager()
    return {"room_id": generate_room_id(taken=room_manager.rooms)}


@router.get("/{room_id}")
async def get_room(room_id: str):
    room = _require_room_manager().get_room_info(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail=f"Room not found: {room_id}")
    room["is_full"] = room["user_count"] >= MAX_PARTICIPANTS
    return room

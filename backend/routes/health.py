"""Health Check API 라우터.

서비스 상태 확인을 위한 엔드포인트를 제공합니다.
"""

import time

from fastapi import APIRouter

from .signaling import get_room_manager

router = APIRouter(prefix="/api/health", tags=["health"])

_started_at = time.time()


@router.get("")
async def health_check():
    """릴레이 상태를 확인합니다.

    Returns:
        dict: 룸 매니저 초기화 여부, 활성 룸/참가자 수, 가동 시간
    """
    room_manager = get_room_manager()
    if room_manager is None:
        return {"status": "not_initialized"}

    return {
        "status": "ok",
        "rooms": len(room_manager.rooms),
        "participants": len(room_manager.peer_to_room),
        "uptime_seconds": round(time.time() - _started_at, 1),
    }

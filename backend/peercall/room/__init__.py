"""룸 모듈.

Classes:
    RoomCoordinator: 룸 세션 오케스트레이터 (입장/퇴장, 채팅, 미디어 토글)
    RoomViewModel: 프레젠테이션 계층에 전달되는 룸 상태 스냅샷
    RoomState: 룸 연결 상태
"""

from .coordinator import RoomCoordinator
from .view_model import RoomState, RoomViewModel

__all__ = [
    "RoomCoordinator",
    "RoomState",
    "RoomViewModel",
]

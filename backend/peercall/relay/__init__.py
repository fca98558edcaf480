"""릴레이 서버 모듈.

Classes:
    RoomManager: 룸 및 참가자 멤버십 관리
    Peer: 룸 참가자와 WebSocket 연결
"""

from .room_manager import Peer, RoomManager

__all__ = ["Peer", "RoomManager"]

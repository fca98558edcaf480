"""릴레이 룸 멤버십 관리 모듈.

릴레이 서버가 룸과 참가자(WebSocket 연결)를 추적합니다. 룸은 첫 참가자가
들어올 때 만들어지고 마지막 참가자가 나가면 삭제됩니다.

Architecture:
    - rooms: Dict[str, Dict[str, Peer]] - 룸 ID → 참가자 맵 (입장 순서 유지)
    - peer_to_room: Dict[str, str] - 참가자 ID → 룸 ID (빠른 조회용)

Examples:
    >>> manager = RoomManager()
    >>> manager.join_room("AB12CD", "peer-123", "alice", websocket)
    >>> manager.get_room_count("AB12CD")
    1
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..shared.dto import Participant

logger = logging.getLogger(__name__)


@dataclass
class Peer:
    """룸에 입장한 참가자와 그 WebSocket 연결.

    Attributes:
        peer_id (str): 릴레이가 발급한 참가자 ID (uuid4)
        display_name (str): 표시 이름
        websocket: 참가자와의 WebSocket 연결 (send_json 지원)
    """
    peer_id: str
    display_name: str
    websocket: Any

    @property
    def participant(self) -> Participant:
        return Participant(id=self.peer_id, name=self.display_name)


class RoomManager:
    """룸과 참가자를 관리합니다.

    asyncio 단일 스레드에서만 사용하며 별도 동기화는 하지 않습니다.
    """

    def __init__(self):
        # room_id -> {peer_id: Peer}
        self.rooms: Dict[str, Dict[str, Peer]] = {}

        # peer_id -> room_id
        self.peer_to_room: Dict[str, str] = {}

    def create_room(self, room_id: str) -> None:
        if room_id not in self.rooms:
            self.rooms[room_id] = {}
            logger.info(f"[Relay] 룸 '{room_id}' 생성")

    def join_room(self, room_id: str, peer_id: str, display_name: str, websocket: Any) -> Peer:
        """참가자를 룸에 추가합니다. 룸이 없으면 만듭니다.

        Returns:
            Peer: 추가된 참가자
        """
        self.create_room(room_id)

        peer = Peer(peer_id=peer_id, display_name=display_name, websocket=websocket)
        self.rooms[room_id][peer_id] = peer
        self.peer_to_room[peer_id] = room_id

        logger.info(f"[Relay] '{display_name}' ({peer_id[:8]}) 룸 '{room_id}' 입장, "
                    f"현재 {len(self.rooms[room_id])}명")
        return peer

    def leave_room(self, peer_id: str) -> Optional[Peer]:
        """참가자를 룸에서 제거합니다. 비게 된 룸은 삭제합니다.

        Returns:
            Optional[Peer]: 제거된 참가자. 어느 룸에도 없었으면 None
        """
        room_id = self.peer_to_room.pop(peer_id, None)
        if room_id is None or room_id not in self.rooms:
            return None

        peer = self.rooms[room_id].pop(peer_id, None)
        if not self.rooms[room_id]:
            del self.rooms[room_id]
            logger.info(f"[Relay] 룸 '{room_id}' 삭제 (빈 룸)")
        elif peer is not None:
            logger.info(f"[Relay] '{peer.display_name}' ({peer_id[:8]}) 룸 '{room_id}' 퇴장, "
                        f"현재 {len(self.rooms[room_id])}명")
        return peer

    def get_room_peers(self, room_id: str) -> List[Peer]:
        return list(self.rooms.get(room_id, {}).values())

    def get_other_peers(self, room_id: str, exclude_peer_id: str) -> List[Peer]:
        """특정 참가자를 제외한 룸의 참가자 목록 (입장 순서)."""
        return [peer for peer in self.rooms.get(room_id, {}).values()
                if peer.peer_id != exclude_peer_id]

    def get_peer_room(self, peer_id: str) -> Optional[str]:
        return self.peer_to_room.get(peer_id)

    def get_peer(self, peer_id: str) -> Optional[Peer]:
        room_id = self.peer_to_room.get(peer_id)
        if room_id and room_id in self.rooms:
            return self.rooms[room_id].get(peer_id)
        return None

    def get_room_count(self, room_id: str) -> int:
        return len(self.rooms.get(room_id, {}))

    def has_room(self, room_id: str) -> bool:
        return room_id in self.rooms

    def get_room_info(self, room_id: str) -> Optional[dict]:
        """대시보드용 룸 정보. 룸이 없으면 None."""
        peers = self.rooms.get(room_id)
        if peers is None:
            return None
        return {
            "room_id": room_id,
            "user_count": len(peers),
            "users": [peer.participant.model_dump() for peer in peers.values()],
        }

    def get_room_list(self) -> List[dict]:
        """모든 룸의 정보를 반환합니다 (룸 생성 순서).

        Returns:
            List[dict]: room_id, user_count, users([{id, name}]) 키를 가진 딕셔너리 목록
        """
        return [self.get_room_info(room_id) for room_id in self.rooms]

"""룸 화면 상태(view model) 모듈.

RoomCoordinator가 유일하게 변경하며, 리스너에게는 copy()로 만든 스냅샷만 전달됩니다.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..shared.dto import ChatMessage, Participant


class RoomState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    JOINED = "joined"
    LEAVING = "leaving"


# 리스너에게 전달되는 이벤트 이름
STATE_EVENT = "state"
ROSTER_EVENT = "roster"
PEER_EVENT = "peer"
REMOTE_TRACK_EVENT = "remote_track"
CHAT_EVENT = "chat"
MEDIA_EVENT = "media"
ERROR_EVENT = "error"
PEER_FAILED_EVENT = "peer_failed"
CHANNEL_LOST_EVENT = "channel_lost"


@dataclass
class RoomViewModel:
    """프레젠테이션 계층이 그리는 룸 상태.

    Attributes:
        room_id: 입장한 룸 ID (입장 요청 시점부터 설정)
        self_participant: 릴레이가 부여한 자신의 참가자 정보
        participants: 자신을 포함한 로스터 (입장 순서)
        connection_state: 룸 연결 상태
        peer_states: 피어별 협상 상태 값 (new, have-local-offer, stable ...)
        peer_connection_states: 피어별 트랜스포트 연결 상태 값
        peer_errors: 피어별 마지막 협상 오류 메시지
        remote_tracks: 피어별 수신 트랙 종류 (audio, video)
        chat_log: 릴레이 전달 순서의 채팅 기록
        is_muted / is_video_off: 로컬 미디어 토글 상태
        last_error: 마지막 룸 수준 오류 메시지
    """

    room_id: Optional[str] = None
    self_participant: Optional[Participant] = None
    participants: List[Participant] = field(default_factory=list)
    connection_state: RoomState = RoomState.DISCONNECTED
    peer_states: Dict[str, str] = field(default_factory=dict)
    peer_connection_states: Dict[str, str] = field(default_factory=dict)
    peer_errors: Dict[str, str] = field(default_factory=dict)
    remote_tracks: Dict[str, List[str]] = field(default_factory=dict)
    chat_log: List[ChatMessage] = field(default_factory=list)
    is_muted: bool = False
    is_video_off: bool = False
    last_error: Optional[str] = None

    @property
    def remote_participants(self) -> List[Participant]:
        if self.self_participant is None:
            return list(self.participants)
        return [p for p in self.participants if p.id != self.self_participant.id]

    def snapshot(self) -> "RoomViewModel":
        return copy.deepcopy(self)

    def forget_peer(self, peer_id: str) -> None:
        for per_peer in (self.peer_states, self.peer_connection_states, self.peer_errors, self.remote_tracks):
            per_peer.pop(peer_id, None)

    def reset_session(self) -> None:
        """룸을 떠난 뒤 세션에 묶인 필드를 비웁니다. 채팅 기록과 마지막 오류는 남깁니다."""
        self.self_participant = None
        self.participants = []
        self.peer_states = {}
        self.peer_connection_states = {}
        self.peer_errors = {}
        self.remote_tracks = {}
        self.is_muted = False
        self.is_video_off = False

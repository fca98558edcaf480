"""참가자 ID → PeerSession 레지스트리 모듈.

SessionRegistry는 세션 맵의 유일한 변경 주체입니다. 외부에서는 로스터/시그널링
이벤트 단위의 의도(on_offer, on_user_left ...)만 호출할 수 있고, 맵에 직접
접근하거나 PeerSession을 직접 만들고 없앨 수 없습니다.

Glare 회피:
    새로 들어온 참가자만 자신의 room-joined 로스터에 있는 기존 참가자에게 offer를
    보냅니다. 기존 참가자는 user-joined를 기록만 하고 offer를 기다립니다.
"""
import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from aiortc import MediaStreamTrack

from ..shared.dto import Participant
from ..shared.exceptions import NegotiationError
from ..signaling.envelopes import IceCandidateInit, SessionDescription
from .peer_session import NegotiationState, PeerSession, SendEnvelope, TransportFactory

logger = logging.getLogger(__name__)


class SessionRegistry:
    """룸 하나의 로스터와 피어 세션을 관리합니다.

    Attributes:
        self_participant (Optional[Participant]): 자신 (room-joined 이후 설정)

    Examples:
        >>> registry = SessionRegistry(channel.send, media.subscribe)
        >>> registry.on_room_joined(me, [alice])
        >>> registry.peer_ids
        ('alice-id',)
        >>> await registry.teardown()
    """

    def __init__(
        self,
        send: SendEnvelope,
        local_tracks: Callable[[], Sequence[MediaStreamTrack]],
        transport_factory: Optional[TransportFactory] = None,
        negotiation_timeout: Optional[float] = None,
        on_state_change: Optional[Callable[[str, NegotiationState], None]] = None,
        on_connection_state_change: Optional[Callable[[str, str], None]] = None,
        on_remote_track: Optional[Callable[[str, MediaStreamTrack], None]] = None,
        on_failure: Optional[Callable[[str, NegotiationError], None]] = None,
    ):
        self._send = send
        self._local_tracks = local_tracks
        self._transport_factory = transport_factory
        self._negotiation_timeout = negotiation_timeout
        self.on_state_change = on_state_change
        self.on_connection_state_change = on_connection_state_change
        self.on_remote_track = on_remote_track
        self.on_failure = on_failure

        self.self_participant: Optional[Participant] = None
        # participant_id -> Participant (자신 포함)
        self._roster: Dict[str, Participant] = {}
        # participant_id -> PeerSession (자신 제외)
        self._sessions: Dict[str, PeerSession] = {}

    # ------------------------------------------------------------
    # 읽기 전용 조회
    # ------------------------------------------------------------

    @property
    def roster(self) -> Tuple[Participant, ...]:
        return tuple(self._roster.values())

    @property
    def peer_ids(self) -> Tuple[str, ...]:
        return tuple(self._sessions)

    def state_of(self, peer_id: str) -> Optional[NegotiationState]:
        session = self._sessions.get(peer_id)
        return session.state if session else None

    def session_states(self) -> Dict[str, NegotiationState]:
        return {peer_id: session.state for peer_id, session in self._sessions.items()}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, peer_id: str) -> bool:
        return peer_id in self._sessions

    async def wait_idle(self) -> None:
        """모든 세션의 대기 중인 작업이 끝날 때까지 기다립니다."""
        await asyncio.gather(*(session.idle() for session in list(self._sessions.values())))

    # ------------------------------------------------------------
    # 로스터 이벤트
    # ------------------------------------------------------------

    def on_room_joined(self, self_participant: Participant, existing_roster: Iterable[Participant]) -> List["asyncio.Future[bool]"]:
        """입장 직후 기존 참가자 각각에게 offer를 보냅니다.

        이 엔드포인트가 offer를 시작하는 유일한 지점입니다.

        Returns:
            List[asyncio.Future[bool]]: 세션별 initiate_offer 결과
        """
        self.self_participant = self_participant
        self._roster = {self_participant.id: self_participant}
        futures = []
        for participant in existing_roster:
            if participant.id == self_participant.id:
                continue
            self._roster[participant.id] = participant
            if participant.id in self._sessions:
                logger.warning(f"[Registry] 피어 {participant.id[:8]} 세션 이미 존재 - offer 생략")
                continue
            session = self._create_session(participant.id)
            futures.append(session.initiate_offer())
        logger.info(f"[Registry] 룸 입장: 로스터 {len(self._roster)}명, offer {len(futures)}건 시작")
        return futures

    def on_user_joined(self, participant: Participant) -> None:
        """로스터에 추가만 합니다. offer는 새 참가자 쪽에서 보냅니다."""
        if self.self_participant and participant.id == self.self_participant.id:
            return
        self._roster[participant.id] = participant
        logger.info(f"[Registry] 참가자 입장: {participant.name} ({participant.id[:8]}), 로스터 {len(self._roster)}명")

    async def on_user_left(self, participant: Participant) -> None:
        """세션을 닫고 제거한 뒤 로스터에서 뺍니다."""
        session = self._sessions.pop(participant.id, None)
        if session is not None:
            await session.close()
        self._roster.pop(participant.id, None)
        logger.info(f"[Registry] 참가자 퇴장: {participant.name} ({participant.id[:8]}), 로스터 {len(self._roster)}명")

    # ------------------------------------------------------------
    # 시그널링 이벤트
    # ------------------------------------------------------------

    def on_offer(self, sender_id: str, offer: SessionDescription) -> Optional["asyncio.Future[bool]"]:
        """세션이 없으면 만들어서 offer를 넘깁니다.

        릴레이는 user-joined를 같은 소켓으로 offer보다 먼저 보내므로, 로스터에 없는
        발신자의 offer는 이미 떠난 참가자의 것으로 보고 폐기합니다.
        """
        session = self._sessions.get(sender_id)
        if session is None:
            if sender_id not in self._roster:
                logger.info(f"[Registry] 로스터에 없는 피어 {sender_id[:8]}의 offer 폐기")
                return None
            session = self._create_session(sender_id)
        return session.accept_offer(offer)

    def on_answer(self, sender_id: str, answer: SessionDescription) -> Optional["asyncio.Future[bool]"]:
        session = self._sessions.get(sender_id)
        if session is None:
            logger.info(f"[Registry] 세션 없는 피어 {sender_id[:8]}의 answer 폐기")
            return None
        return session.accept_answer(answer)

    def on_ice_candidate(self, sender_id: str, candidate: IceCandidateInit) -> Optional["asyncio.Future[bool]"]:
        session = self._sessions.get(sender_id)
        if session is None:
            logger.info(f"[Registry] 세션 없는 피어 {sender_id[:8]}의 ICE 후보 폐기")
            return None
        return session.add_remote_candidate(candidate)

    async def teardown(self) -> None:
        """모든 세션을 닫고 레지스트리를 비웁니다. 룸을 떠날 때 한 번 호출됩니다."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        await asyncio.gather(*(session.close() for session in sessions))
        self._roster.clear()
        self.self_participant = None
        logger.info(f"[Registry] 정리 완료: 세션 {len(sessions)}개 종료")

    # ------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------

    def _create_session(self, peer_id: str) -> PeerSession:
        session = PeerSession(
            peer_id,
            self._local_tracks(),
            self._send,
            transport_factory=self._transport_factory,
            negotiation_timeout=self._negotiation_timeout,
            on_state_change=self.on_state_change,
            on_connection_state_change=self.on_connection_state_change,
            on_remote_track=self.on_remote_track,
            on_failure=self.on_failure,
        )
        self._sessions[peer_id] = session
        logger.info(f"[Registry] 피어 {peer_id[:8]} 세션 생성 (총 {len(self._sessions)}개)")
        return session

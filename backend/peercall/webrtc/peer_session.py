"""원격 참가자 한 명과의 WebRTC 협상 세션 모듈.

PeerSession은 하나의 RTCPeerConnection 협상(offer/answer/ICE)을 소유하며,
remote description이 설정되기 전에 도착한 ICE 후보를 큐에 보관했다가
설정 직후 도착 순서대로 한 번만 적용합니다.

Negotiation States:
    new → have-local-offer → stable        (이쪽이 offer를 보낸 경우)
    new → have-remote-offer → stable       (상대의 offer에 answer한 경우)
    stable → have-remote-offer → stable    (상대의 재협상 offer)
    * → failed                             (협상 실패/타임아웃, 자동 재시도 없음)
    * → closed                             (close(), 멱등)

Concurrency:
    - 세션마다 작업 큐와 워커 태스크가 하나씩 있어서 같은 피어의 단계는 직렬로,
      서로 다른 피어는 병렬로 실행됩니다.
    - 공개 메서드는 작업을 큐에 넣고 Future를 반환합니다. Future는 작업이 적용되면
      True, 무시/폐기/취소/실패하면 False로 완료되며 예외를 던지지 않습니다.
    - close()는 큐를 기다리지 않고 즉시 진행 중인 작업을 취소합니다. 취소 후 끝난
      비동기 단계는 모두 no-op입니다.

See Also:
    session_registry.py: 참가자 ID → PeerSession 관리
    aiortc Documentation: https://aiortc.readthedocs.io/
"""
import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, List, Optional, Sequence, Tuple

from aiortc import MediaStreamTrack, RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from ..shared.exceptions import NegotiationError, NegotiationTimeoutError, SignalingError
from ..signaling.envelopes import (
    IceCandidateInit,
    SessionDescription,
    make_answer,
    make_ice_candidate,
    make_offer,
)
from .config import build_rtc_configuration, connection_config

logger = logging.getLogger(__name__)

SendEnvelope = Callable[[Any], Awaitable[None]]
TransportFactory = Callable[[], RTCPeerConnection]


class NegotiationState(str, Enum):
    NEW = "new"
    HAVE_LOCAL_OFFER = "have-local-offer"
    HAVE_REMOTE_OFFER = "have-remote-offer"
    STABLE = "stable"
    FAILED = "failed"
    CLOSED = "closed"


def default_transport_factory() -> RTCPeerConnection:
    return RTCPeerConnection(configuration=build_rtc_configuration())


def _to_rtc(description: SessionDescription) -> RTCSessionDescription:
    return RTCSessionDescription(sdp=description.sdp, type=description.type)


def _from_rtc(description: RTCSessionDescription) -> SessionDescription:
    return SessionDescription(sdp=description.sdp, type=description.type)


class PeerSession:
    """원격 참가자 한 명과의 협상 상태 머신.

    Attributes:
        peer_id (str): 원격 참가자 ID
        state (NegotiationState): 현재 협상 상태
        connection_state (str): 트랜스포트 연결 상태 (new, connecting, connected, failed, closed)
        remote_tracks (List[MediaStreamTrack]): 상대에게서 받은 트랙

    Examples:
        >>> session = PeerSession("peer-456", media.tracks, channel.send)
        >>> await session.initiate_offer()
        True
        >>> session.state
        <NegotiationState.HAVE_LOCAL_OFFER: 'have-local-offer'>
        >>> await session.close()
    """

    def __init__(
        self,
        peer_id: str,
        local_tracks: Sequence[MediaStreamTrack],
        send: SendEnvelope,
        transport_factory: Optional[TransportFactory] = None,
        negotiation_timeout: Optional[float] = None,
        on_state_change: Optional[Callable[[str, NegotiationState], None]] = None,
        on_connection_state_change: Optional[Callable[[str, str], None]] = None,
        on_remote_track: Optional[Callable[[str, MediaStreamTrack], None]] = None,
        on_failure: Optional[Callable[[str, NegotiationError], None]] = None,
    ):
        self.peer_id = peer_id
        self._local_tracks = list(local_tracks)
        self._send = send
        self._transport_factory = transport_factory or default_transport_factory
        if negotiation_timeout is None:
            negotiation_timeout = connection_config.NEGOTIATION_TIMEOUT
        self._negotiation_timeout = negotiation_timeout

        self.on_state_change = on_state_change
        self.on_connection_state_change = on_connection_state_change
        self.on_remote_track = on_remote_track
        self.on_failure = on_failure

        self._state = NegotiationState.NEW
        self.connection_state = "new"
        self.remote_tracks: List[MediaStreamTrack] = []

        self._pc: Optional[RTCPeerConnection] = None
        self._remote_description_set = False
        self._pending_candidates: Deque[IceCandidateInit] = deque()

        self._queue: "asyncio.Queue[Tuple[Callable, tuple, asyncio.Future]]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._timeout_handle: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------
    # 상태 조회
    # ------------------------------------------------------------

    @property
    def state(self) -> NegotiationState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is NegotiationState.CLOSED

    @property
    def remote_description_set(self) -> bool:
        return self._remote_description_set

    @property
    def pending_candidates(self) -> Tuple[IceCandidateInit, ...]:
        return tuple(self._pending_candidates)

    @property
    def transport(self) -> Optional[RTCPeerConnection]:
        return self._pc

    # ------------------------------------------------------------
    # 공개 작업 (큐에 넣고 Future 반환)
    # ------------------------------------------------------------

    def initiate_offer(self) -> "asyncio.Future[bool]":
        """offer를 만들어 상대에게 보냅니다. new 상태에서만 유효합니다."""
        return self._submit(self._initiate_offer)

    def accept_offer(self, offer: SessionDescription) -> "asyncio.Future[bool]":
        """상대의 offer를 받아 answer를 보냅니다. new 또는 stable(재협상)에서만 유효합니다."""
        return self._submit(self._accept_offer, offer)

    def accept_answer(self, answer: SessionDescription) -> "asyncio.Future[bool]":
        """상대의 answer를 적용합니다. have-local-offer가 아니면 폐기됩니다."""
        return self._submit(self._accept_answer, answer)

    def add_remote_candidate(self, candidate: IceCandidateInit) -> "asyncio.Future[bool]":
        """원격 ICE 후보를 적용하거나, remote description 전이면 큐에 보관합니다."""
        return self._submit(self._add_remote_candidate, candidate)

    async def idle(self) -> None:
        """큐에 들어간 작업이 모두 끝날 때까지 기다립니다."""
        if not self.is_closed:
            await self._queue.join()

    async def close(self) -> None:
        """세션을 닫고 트랜스포트와 보관 중인 후보를 해제합니다. 멱등입니다."""
        if self.is_closed:
            return
        self._set_state(NegotiationState.CLOSED)
        self._cancel_timeout()

        worker, self._worker = self._worker, None
        if worker is not None and worker is not asyncio.current_task():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        while not self._queue.empty():
            _, _, future = self._queue.get_nowait()
            self._queue.task_done()
            if not future.done():
                future.set_result(False)

        self._pending_candidates.clear()
        pc, self._pc = self._pc, None
        if pc is not None:
            await pc.close()
        logger.info(f"[WebRTC] 피어 {self.peer_id[:8]} 세션 종료")

    # ------------------------------------------------------------
    # 워커
    # ------------------------------------------------------------

    def _submit(self, operation: Callable, *args) -> "asyncio.Future[bool]":
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if self.is_closed:
            logger.debug(f"[WebRTC] 피어 {self.peer_id[:8]} 닫힌 세션 작업 무시: {operation.__name__}")
            future.set_result(False)
            return future
        self._queue.put_nowait((operation, args, future))
        if self._worker is None:
            self._worker = asyncio.create_task(self._run())
        return future

    async def _run(self) -> None:
        while True:
            operation, args, future = await self._queue.get()
            try:
                result = await operation(*args)
            except asyncio.CancelledError:
                self._queue.task_done()
                if not future.done():
                    future.set_result(False)
                raise
            except Exception as e:
                logger.error(f"[WebRTC] 피어 {self.peer_id[:8]} {operation.__name__} 처리 중 오류: {e}", exc_info=True)
                result = False
            self._queue.task_done()
            if not future.done():
                future.set_result(result)

    # ------------------------------------------------------------
    # 협상 단계
    # ------------------------------------------------------------

    async def _initiate_offer(self) -> bool:
        if self._state is not NegotiationState.NEW:
            logger.warning(f"[WebRTC] 피어 {self.peer_id[:8]} offer 생성 무시 (상태: {self._state.value})")
            return False

        try:
            pc = self._ensure_transport()
            offer = await pc.createOffer()
            if self.is_closed:
                return False
            await pc.setLocalDescription(offer)
            if self.is_closed:
                return False
        except Exception as e:
            self._fail(NegotiationError(self.peer_id, f"offer 생성 실패: {e}", e))
            return False

        self._set_state(NegotiationState.HAVE_LOCAL_OFFER)
        await self._emit(make_offer(self.peer_id, _from_rtc(pc.localDescription)))
        self._arm_timeout()
        logger.info(f"[WebRTC] 피어 {self.peer_id[:8]}에게 offer 전송")
        return True

    async def _accept_offer(self, offer: SessionDescription) -> bool:
        if self._state not in (NegotiationState.NEW, NegotiationState.STABLE):
            logger.warning(f"[WebRTC] 피어 {self.peer_id[:8]} offer 무시 (협상 중, 상태: {self._state.value})")
            return False

        try:
            pc = self._ensure_transport()
            self._set_state(NegotiationState.HAVE_REMOTE_OFFER)
            await pc.setRemoteDescription(_to_rtc(offer))
            if self.is_closed:
                return False
            self._remote_description_set = True
            answer = await pc.createAnswer()
            if self.is_closed:
                return False
            await pc.setLocalDescription(answer)
            if self.is_closed:
                return False
        except Exception as e:
            self._fail(NegotiationError(self.peer_id, f"answer 생성 실패: {e}", e))
            return False

        self._set_state(NegotiationState.STABLE)
        await self._emit(make_answer(self.peer_id, _from_rtc(pc.localDescription)))
        logger.info(f"[WebRTC] 피어 {self.peer_id[:8]}에게 answer 전송")
        await self._drain_candidates()
        return True

    async def _accept_answer(self, answer: SessionDescription) -> bool:
        if self._state is not NegotiationState.HAVE_LOCAL_OFFER:
            logger.info(f"[WebRTC] 피어 {self.peer_id[:8]} 지난 answer 폐기 (상태: {self._state.value})")
            return False

        try:
            await self._pc.setRemoteDescription(_to_rtc(answer))
        except Exception as e:
            self._fail(NegotiationError(self.peer_id, f"answer 적용 실패: {e}", e))
            return False
        if self.is_closed:
            return False

        self._remote_description_set = True
        self._cancel_timeout()
        self._set_state(NegotiationState.STABLE)
        logger.info(f"[WebRTC] 피어 {self.peer_id[:8]} 협상 완료")
        await self._drain_candidates()
        return True

    async def _add_remote_candidate(self, candidate: IceCandidateInit) -> bool:
        if self._state in (NegotiationState.CLOSED, NegotiationState.FAILED):
            return False
        if not self._remote_description_set:
            self._pending_candidates.append(candidate)
            logger.debug(f"[WebRTC] 피어 {self.peer_id[:8]} ICE 후보 보관 ({len(self._pending_candidates)}개)")
            return True
        return await self._apply_candidate(candidate)

    async def _drain_candidates(self) -> None:
        if self._pending_candidates:
            logger.info(f"[WebRTC] 피어 {self.peer_id[:8]} 보관된 ICE 후보 {len(self._pending_candidates)}개 적용")
        while self._pending_candidates:
            candidate = self._pending_candidates.popleft()
            await self._apply_candidate(candidate)
            if self.is_closed:
                return

    async def _apply_candidate(self, candidate: IceCandidateInit) -> bool:
        candidate_str = candidate.candidate
        if candidate_str.startswith("candidate:"):
            candidate_str = candidate_str[10:]
        if not candidate_str:
            logger.debug(f"[WebRTC] 피어 {self.peer_id[:8]} end-of-candidates 표시 무시")
            return False

        try:
            ice_candidate = candidate_from_sdp(candidate_str)
            ice_candidate.sdpMid = candidate.sdp_mid
            ice_candidate.sdpMLineIndex = candidate.sdp_mline_index
            await self._pc.addIceCandidate(ice_candidate)
        except Exception as e:
            logger.warning(f"[WebRTC] 피어 {self.peer_id[:8]} ICE 후보 추가 실패: {e}")
            return False
        logger.debug(f"[WebRTC] 피어 {self.peer_id[:8]} ICE 후보 추가 완료")
        return True

    async def _check_timeout(self) -> bool:
        if self._state is NegotiationState.HAVE_LOCAL_OFFER:
            self._fail(NegotiationTimeoutError(
                self.peer_id, f"{self._negotiation_timeout}초 안에 answer를 받지 못함"
            ))
            return True
        return False

    # ------------------------------------------------------------
    # 내부 도우미
    # ------------------------------------------------------------

    def _ensure_transport(self) -> RTCPeerConnection:
        """트랜스포트를 한 번만 만들고, 협상 메시지 전에 로컬 트랙을 붙입니다."""
        if self._pc is not None:
            return self._pc

        pc = self._transport_factory()
        for track in self._local_tracks:
            pc.addTrack(track)
        self._pc = pc
        logger.info(f"[WebRTC] 피어 {self.peer_id[:8]} 연결 생성, 로컬 트랙 {len(self._local_tracks)}개 연결")

        @pc.on("icecandidate")
        async def on_ice_candidate(candidate):
            if candidate is None or self.is_closed:
                return
            await self._emit(make_ice_candidate(self.peer_id, IceCandidateInit(
                candidate="candidate:" + candidate_to_sdp(candidate),
                sdp_mid=candidate.sdpMid,
                sdp_mline_index=candidate.sdpMLineIndex,
            )))

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            if self._pc is not pc:
                return
            self.connection_state = pc.connectionState
            logger.info(f"[WebRTC] 피어 {self.peer_id[:8]} 연결 상태: {pc.connectionState}")
            if self.on_connection_state_change:
                self.on_connection_state_change(self.peer_id, pc.connectionState)
            if pc.connectionState == "failed":
                self._fail(NegotiationError(self.peer_id, "ICE 연결 실패"))

        @pc.on("track")
        def on_track(track: MediaStreamTrack):
            if self.is_closed:
                return
            logger.info(f"[WebRTC] 피어 {self.peer_id[:8]} {track.kind} 트랙 수신")
            self.remote_tracks.append(track)
            if self.on_remote_track:
                self.on_remote_track(self.peer_id, track)

        return pc

    async def _emit(self, envelope) -> None:
        try:
            await self._send(envelope)
        except SignalingError as e:
            logger.error(f"[WebRTC] 피어 {self.peer_id[:8]} {envelope.type} 전송 실패: {e}")

    def _set_state(self, state: NegotiationState) -> None:
        if state is self._state:
            return
        logger.debug(f"[WebRTC] 피어 {self.peer_id[:8]} 상태: {self._state.value} -> {state.value}")
        self._state = state
        if self.on_state_change:
            self.on_state_change(self.peer_id, state)

    def _fail(self, error: NegotiationError) -> None:
        if self._state in (NegotiationState.CLOSED, NegotiationState.FAILED):
            return
        logger.error(f"[WebRTC] 피어 {self.peer_id[:8]} 협상 실패: {error}")
        self._cancel_timeout()
        self._set_state(NegotiationState.FAILED)
        if self.on_failure:
            self.on_failure(self.peer_id, error)

    def _arm_timeout(self) -> None:
        if not self._negotiation_timeout:
            return
        loop = asyncio.get_running_loop()
        self._timeout_handle = loop.call_later(
            self._negotiation_timeout, self._submit, self._check_timeout
        )

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

"""룸 세션 오케스트레이터 모듈.

RoomCoordinator는 룸 세션 하나 동안 SignalingChannel, MediaSource, SessionRegistry를
소유하며, 릴레이 이벤트를 레지스트리 작업으로 옮기고 view model을 갱신합니다.

Room States:
    disconnected → connecting → joined → leaving → disconnected

    - connecting 중 error envelope 수신: 입장 실패, disconnected로 복귀
    - connecting/joined 중 채널 손실: 정리 후 disconnected, channel_lost 이벤트

Events:
    subscribe()로 등록한 리스너는 listener(event, view) 형태로 호출됩니다.
    event는 view_model.py의 *_EVENT 상수 중 하나이고, view는 스냅샷입니다.

See Also:
    webrtc/session_registry.py: 피어 세션 관리
    signaling/channel.py: 릴레이 WebSocket 채널
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from aiortc import MediaStreamTrack

from ..config import CallSettings, get_call_settings
from ..media.source import MediaSource
from ..shared.dto import ChatMessage, Participant
from ..shared.exceptions import (
    InvalidStateError,
    MediaAccessError,
    NegotiationError,
    SignalingError,
)
from ..signaling import envelopes
from ..signaling.channel import SignalingChannel
from ..signaling.envelopes import make_chat, make_join, make_leave
from ..signaling.validation import validate_display_name, validate_room_id
from ..webrtc.config import connection_config
from ..webrtc.peer_session import NegotiationState, TransportFactory
from ..webrtc.session_registry import SessionRegistry
from .view_model import (
    CHANNEL_LOST_EVENT,
    CHAT_EVENT,
    ERROR_EVENT,
    MEDIA_EVENT,
    PEER_EVENT,
    PEER_FAILED_EVENT,
    REMOTE_TRACK_EVENT,
    ROSTER_EVENT,
    STATE_EVENT,
    RoomState,
    RoomViewModel,
)

logger = logging.getLogger(__name__)

Listener = Callable[[str, RoomViewModel], None]
ChannelFactory = Callable[[CallSettings], SignalingChannel]
MediaFactory = Callable[[CallSettings], MediaSource]


def default_channel_factory(settings: CallSettings) -> SignalingChannel:
    return SignalingChannel(
        settings.SIGNALING_URL,
        open_timeout=settings.SIGNALING_OPEN_TIMEOUT,
        ping_interval=settings.SIGNALING_PING_INTERVAL,
        ping_timeout=settings.SIGNALING_PING_TIMEOUT,
    )


def default_media_factory(settings: CallSettings) -> MediaSource:
    return MediaSource(settings)


class RoomCoordinator:
    """1:1 통화 룸 세션의 최상위 조정자.

    Examples:
        >>> coordinator = RoomCoordinator()
        >>> coordinator.subscribe(lambda event, view: print(event, view.connection_state))
        >>> await coordinator.join("AB12CD", "alice")
        >>> await coordinator.wait_joined()
        >>> await coordinator.send_chat("hello")
        True
        >>> await coordinator.leave()
    """

    def __init__(
        self,
        settings: Optional[CallSettings] = None,
        channel_factory: Optional[ChannelFactory] = None,
        media_factory: Optional[MediaFactory] = None,
        transport_factory: Optional[TransportFactory] = None,
        negotiation_timeout: Optional[float] = None,
    ):
        self.settings = settings or get_call_settings()
        self._channel_factory = channel_factory or default_channel_factory
        self._media_factory = media_factory or default_media_factory
        self._transport_factory = transport_factory
        self._negotiation_timeout = negotiation_timeout

        self._state = RoomState.DISCONNECTED
        self._view = RoomViewModel()
        self._listeners: List[Listener] = []

        self._channel: Optional[SignalingChannel] = None
        self._media: Optional[MediaSource] = None
        self._registry: Optional[SessionRegistry] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._joined_event: Optional[asyncio.Event] = None
        self._joining = False
        self._remote_media: Dict[str, List[MediaStreamTrack]] = {}

    # ------------------------------------------------------------
    # 조회 / 구독
    # ------------------------------------------------------------

    @property
    def state(self) -> RoomState:
        return self._state

    @property
    def view(self) -> RoomViewModel:
        return self._view.snapshot()

    @property
    def media(self) -> Optional[MediaSource]:
        return self._media

    @property
    def registry(self) -> Optional[SessionRegistry]:
        return self._registry

    def remote_media(self, peer_id: str) -> List[MediaStreamTrack]:
        """피어에게서 받은 트랙 (재생/녹화 계층에 넘길 용도)."""
        return list(self._remote_media.get(peer_id, []))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """view model 변경 리스너를 등록하고, 등록 해제 함수를 반환합니다."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------
    # 입장 / 퇴장
    # ------------------------------------------------------------

    async def join(self, room_id: str, display_name: str) -> None:
        """룸 입장을 요청합니다. room-joined 수신은 wait_joined()로 기다립니다.

        Raises:
            InvalidStateError: disconnected 상태가 아닐 때
            InvalidJoinRequestError: 룸 ID 또는 표시 이름 형식 오류
            MediaAccessError: 카메라/마이크 획득 실패
            SignalingError: 릴레이 연결 또는 join-room 전송 실패
        """
        if self._state is not RoomState.DISCONNECTED or self._joining:
            raise InvalidStateError(f"join() is not allowed in state '{self._state.value}'")
        validate_room_id(room_id)
        validate_display_name(display_name)

        self._joining = True
        try:
            await self._open(room_id, display_name)
        finally:
            self._joining = False

        self._view.room_id = room_id
        self._view.chat_log = []
        self._view.last_error = None
        self._set_state(RoomState.CONNECTING)
        self._receive_task = asyncio.create_task(self._receive_loop(self._channel))

    async def _open(self, room_id: str, display_name: str) -> None:
        media = self._media_factory(self.settings)
        try:
            await media.acquire()
        except MediaAccessError as e:
            media.stop()
            self._record_error(str(e))
            raise

        channel = self._channel_factory(self.settings)
        try:
            await channel.connect()
            await channel.send(make_join(room_id, display_name))
        except SignalingError as e:
            await channel.close()
            media.stop()
            self._record_error(str(e))
            raise

        self._media = media
        self._channel = channel
        self._joined_event = asyncio.Event()
        self._registry = SessionRegistry(
            channel.send,
            media.subscribe,
            transport_factory=self._transport_factory,
            negotiation_timeout=self._negotiation_timeout,
            on_state_change=self._on_peer_state,
            on_connection_state_change=self._on_peer_connection_state,
            on_remote_track=self._on_remote_track,
            on_failure=self._on_peer_failure,
        )
        self._view.is_muted = media.is_muted
        self._view.is_video_off = media.is_video_off
        logger.info(f"[Room] 룸 {room_id} 입장 요청: {display_name}")

    async def wait_joined(self, timeout: Optional[float] = None) -> None:
        """room-joined를 받을 때까지 기다립니다.

        Raises:
            InvalidStateError: join()을 호출하지 않은 경우
            SignalingError: 시간 초과, 입장 거부 또는 채널 손실
        """
        if self._state is RoomState.JOINED:
            return
        if self._joined_event is None:
            raise InvalidStateError("join() has not been called")
        if timeout is None:
            timeout = connection_config.JOIN_TIMEOUT
        try:
            await asyncio.wait_for(self._joined_event.wait(), timeout)
        except asyncio.TimeoutError as e:
            raise SignalingError(f"room-joined not received within {timeout}s") from e
        if self._state is not RoomState.JOINED:
            raise SignalingError(self._view.last_error or "join failed")

    async def leave(self) -> None:
        """룸을 떠나고 모든 세션, 로컬 미디어, 채널을 정리합니다.

        Raises:
            InvalidStateError: connecting/joined 상태가 아닐 때
        """
        if self._state not in (RoomState.CONNECTING, RoomState.JOINED):
            raise InvalidStateError(f"leave() is not allowed in state '{self._state.value}'")
        self._set_state(RoomState.LEAVING)

        if self._channel is not None:
            try:
                await self._channel.send(make_leave())
            except SignalingError as e:
                logger.warning(f"[Room] leave-call 전송 실패 (무시): {e}")

        await self._release()
        self._set_state(RoomState.DISCONNECTED)
        logger.info("[Room] 룸 퇴장 완료")

    # ------------------------------------------------------------
    # 채팅 / 미디어
    # ------------------------------------------------------------

    async def send_chat(self, body: str) -> bool:
        """채팅 메시지를 보냅니다. 로컬 에코는 하지 않습니다.

        Returns:
            bool: 전송했으면 True, 공백뿐인 본문이면 False

        Raises:
            InvalidStateError: joined 상태가 아닐 때
            SignalingError: 전송 실패
        """
        if self._state is not RoomState.JOINED:
            raise InvalidStateError(f"send_chat() is not allowed in state '{self._state.value}'")
        text = body.strip()
        if not text:
            return False
        await self._channel.send(make_chat(self._view.room_id, text))
        return True

    def toggle_mute(self) -> bool:
        if self._media is None:
            return False
        self._view.is_muted = self._media.toggle_mute()
        self._notify(MEDIA_EVENT)
        return self._view.is_muted

    def toggle_video(self) -> bool:
        if self._media is None:
            return False
        self._view.is_video_off = self._media.toggle_video()
        self._notify(MEDIA_EVENT)
        return self._view.is_video_off

    # ------------------------------------------------------------
    # 수신 루프
    # ------------------------------------------------------------

    async def _receive_loop(self, channel: SignalingChannel) -> None:
        reason = "relay closed the connection"
        try:
            async for envelope in channel.messages():
                try:
                    await self._dispatch(envelope)
                except (SignalingError, asyncio.CancelledError):
                    raise
                except Exception as e:
                    logger.error(f"[Room] {envelope.type} 처리 중 오류: {e}", exc_info=True)
                # 처리 중 세션이 정리되었으면 이 루프는 더 이상 룸 소유가 아님
                if not self._owns_receive_loop():
                    return
        except SignalingError as e:
            reason = str(e)
        if self._owns_receive_loop():
            await self._on_channel_lost(reason)

    def _owns_receive_loop(self) -> bool:
        return self._receive_task is not None and self._receive_task is asyncio.current_task()

    async def _dispatch(self, envelope) -> None:
        kind = envelope.type

        if kind == envelopes.ROOM_JOINED:
            self._on_room_joined(envelope.data)
            return
        if kind == envelopes.ERROR:
            await self._on_relay_error(envelope.data.message)
            return
        if self._state is not RoomState.JOINED:
            logger.debug(f"[Room] 입장 전 메시지 무시: {kind}")
            return

        registry = self._registry
        if kind == envelopes.USER_JOINED:
            registry.on_user_joined(envelope.data)
            self._sync_roster()
        elif kind == envelopes.USER_LEFT:
            participant = envelope.data
            await registry.on_user_left(participant)
            self._remote_media.pop(participant.id, None)
            self._view.forget_peer(participant.id)
            self._sync_roster()
        elif kind == envelopes.OFFER:
            if self._is_self(envelope.data.sender):
                return
            registry.on_offer(envelope.data.sender, envelope.data.sdp_offer)
        elif kind == envelopes.ANSWER:
            registry.on_answer(envelope.data.sender, envelope.data.sdp_answer)
        elif kind == envelopes.ICE_CANDIDATE:
            registry.on_ice_candidate(envelope.data.sender, envelope.data.candidate)
        elif kind == envelopes.CHAT_MESSAGE:
            message = envelope.data
            if not isinstance(message, ChatMessage):
                logger.debug("[Room] 발신자 정보 없는 채팅 메시지 무시")
                return
            self._view.chat_log.append(message)
            self._notify(CHAT_EVENT)
        else:
            logger.debug(f"[Room] 처리하지 않는 메시지: {kind}")

    def _on_room_joined(self, data) -> None:
        if self._state is not RoomState.CONNECTING:
            logger.warning(f"[Room] room-joined 무시 (상태: {self._state.value})")
            return
        me = Participant(id=data.self_id, name=data.self_name)
        self._view.room_id = data.room_id
        self._view.self_participant = me
        self._set_state(RoomState.JOINED)
        self._registry.on_room_joined(me, data.users)
        self._sync_roster()
        logger.info(f"[Room] 룸 {data.room_id} 입장 완료: {me.name} ({me.id[:8]}), 참가자 {data.user_count}명")
        self._joined_event.set()

    async def _on_relay_error(self, message: str) -> None:
        logger.error(f"[Room] 릴레이 오류: {message}")
        if self._state is RoomState.CONNECTING:
            self._view.last_error = message
            await self._release()
            self._set_state(RoomState.DISCONNECTED)
            self._notify(ERROR_EVENT)
            return
        self._record_error(message)

    async def _on_channel_lost(self, reason: str) -> None:
        if self._state not in (RoomState.CONNECTING, RoomState.JOINED):
            return
        logger.error(f"[Room] 시그널링 채널 손실: {reason}")
        self._view.last_error = reason
        await self._release()
        self._set_state(RoomState.DISCONNECTED)
        self._notify(CHANNEL_LOST_EVENT)

    # ------------------------------------------------------------
    # 레지스트리 콜백
    # ------------------------------------------------------------

    def _on_peer_state(self, peer_id: str, state: NegotiationState) -> None:
        self._view.peer_states[peer_id] = state.value
        self._notify(PEER_EVENT)

    def _on_peer_connection_state(self, peer_id: str, state: str) -> None:
        self._view.peer_connection_states[peer_id] = state
        self._notify(PEER_EVENT)

    def _on_remote_track(self, peer_id: str, track: MediaStreamTrack) -> None:
        self._remote_media.setdefault(peer_id, []).append(track)
        self._view.remote_tracks.setdefault(peer_id, []).append(track.kind)
        self._notify(REMOTE_TRACK_EVENT)

    def _on_peer_failure(self, peer_id: str, error: NegotiationError) -> None:
        self._view.peer_errors[peer_id] = str(error)
        self._notify(PEER_FAILED_EVENT)

    # ------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------

    async def _release(self) -> None:
        """수신 루프, 세션, 로컬 미디어, 채널을 이 순서로 정리합니다."""
        task, self._receive_task = self._receive_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        registry, self._registry = self._registry, None
        if registry is not None:
            await registry.teardown()

        media, self._media = self._media, None
        if media is not None:
            media.stop()

        channel, self._channel = self._channel, None
        if channel is not None:
            await channel.close()

        self._remote_media.clear()
        self._view.reset_session()
        if self._joined_event is not None:
            self._joined_event.set()

    def _sync_roster(self) -> None:
        self._view.participants = list(self._registry.roster)
        self._notify(ROSTER_EVENT)

    def _is_self(self, participant_id: str) -> bool:
        me = self._view.self_participant
        return me is not None and me.id == participant_id

    def _record_error(self, message: str) -> None:
        self._view.last_error = message
        self._notify(ERROR_EVENT)

    def _set_state(self, state: RoomState) -> None:
        if state is self._state:
            return
        logger.info(f"[Room] 상태: {self._state.value} -> {state.value}")
        self._state = state
        self._view.connection_state = state
        self._notify(STATE_EVENT)

    def _notify(self, event: str) -> None:
        if not self._listeners:
            return
        view = self._view.snapshot()
        for listener in list(self._listeners):
            try:
                listener(event, view)
            except Exception as e:
                logger.error(f"[Room] 리스너 오류 ({event}): {e}", exc_info=True)

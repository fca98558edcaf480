"""릴레이와의 WebSocket 시그널링 채널.

하나의 룸 세션 동안 RoomCoordinator가 소유하며, envelope 단위로 송수신합니다.
해석할 수 없는 프레임은 경고 로그를 남기고 건너뜁니다.
"""

import logging
from typing import AsyncIterator, Optional

import websockets
from pydantic import BaseModel

from ..shared.exceptions import EnvelopeError, SignalingError
from .envelopes import SignalingEnvelope, parse_envelope, to_json

logger = logging.getLogger(__name__)


class SignalingChannel:
    """릴레이 서비스와의 양방향 메시지 전송 채널.

    Attributes:
        url (str): 릴레이 WebSocket URL (예: ws://localhost:8000/ws)

    Examples:
        >>> channel = SignalingChannel("ws://localhost:8000/ws")
        >>> await channel.connect()
        >>> await channel.send(make_join("AB12CD", "alice"))
        >>> async for envelope in channel.messages():
        ...     print(envelope.type)
    """

    def __init__(
        self,
        url: str,
        open_timeout: float = 10.0,
        ping_interval: Optional[float] = 20.0,
        ping_timeout: Optional[float] = 10.0,
    ):
        self.url = url
        self.open_timeout = open_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self._ws = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        """릴레이에 연결합니다.

        Raises:
            SignalingError: 연결 실패 (주소 오류, 핸드셰이크 실패, 타임아웃)
        """
        if self._ws is not None:
            return
        logger.info(f"[Signaling] 릴레이 연결 중: {self.url}")
        try:
            self._ws = await websockets.connect(
                self.url,
                open_timeout=self.open_timeout,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
            )
        except (OSError, TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise SignalingError(f"relay connection failed: {e}") from e
        logger.info("[Signaling] 릴레이 연결 완료")

    async def send(self, envelope: BaseModel) -> None:
        """envelope를 전송합니다.

        Raises:
            SignalingError: 채널이 열려 있지 않거나 연결이 끊긴 경우
        """
        if self._ws is None:
            raise SignalingError("channel is not open")
        try:
            await self._ws.send(to_json(envelope))
        except websockets.exceptions.ConnectionClosed as e:
            raise SignalingError(f"relay connection closed: {e}") from e
        logger.debug(f"[Signaling] 전송: {envelope.type}")

    async def messages(self) -> AsyncIterator[SignalingEnvelope]:
        """수신한 envelope를 도착 순서대로 반환합니다.

        정상 종료 시 반복이 끝나고, 비정상 종료 시 SignalingError가 발생합니다.
        """
        if self._ws is None:
            raise SignalingError("channel is not open")
        try:
            async for raw in self._ws:
                try:
                    envelope = parse_envelope(raw)
                except EnvelopeError as e:
                    logger.warning(f"[Signaling] 해석 불가 메시지 무시: {e}")
                    continue
                logger.debug(f"[Signaling] 수신: {envelope.type}")
                yield envelope
        except websockets.exceptions.ConnectionClosedError as e:
            raise SignalingError(f"relay connection lost: {e}") from e

    async def close(self) -> None:
        """채널을 닫습니다. 여러 번 호출해도 안전합니다."""
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
            logger.info("[Signaling] 릴레이 연결 종료")

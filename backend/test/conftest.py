"""
Pytest configuration for peercall tests.

Provides fakes for the WebRTC transport, the signaling channel and local media,
plus an in-memory relay that runs the real signaling router over fake sockets.
"""

import asyncio
import inspect
import os
import sys
from typing import Callable, List, Optional

import pytest
from aiortc import RTCSessionDescription
from fastapi import WebSocketDisconnect

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from peercall.config import CallSettings  # noqa: E402
from peercall.relay import RoomManager  # noqa: E402
from peercall.shared.exceptions import MediaAccessError, SignalingError  # noqa: E402
from peercall.signaling.envelopes import IceCandidateInit, SessionDescription, parse_envelope, to_json  # noqa: E402


def candidate(ip: str = "192.168.1.2", port: int = 50000, mid: str = "0", index: int = 0) -> IceCandidateInit:
    """브라우저 형식 ICE 후보를 만듭니다."""
    return IceCandidateInit(
        candidate=f"candidate:1 1 udp 2130706431 {ip} {port} typ host",
        sdp_mid=mid,
        sdp_mline_index=index,
    )


OFFER = SessionDescription(sdp="v=0 remote-offer", type="offer")
ANSWER = SessionDescription(sdp="v=0 remote-answer", type="answer")


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """조건이 참이 될 때까지 이벤트 루프를 돌립니다."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ============================================================
# WebRTC transport fake
# ============================================================

class FakeTransport:
    """RTCPeerConnection 대역. 호출 순서를 calls에 기록합니다."""

    def __init__(self, fail_on: tuple = ()):
        self.fail_on = set(fail_on)
        self.handlers = {}
        self.calls: List[str] = []
        self.tracks = []
        self.candidates = []
        self.localDescription: Optional[RTCSessionDescription] = None
        self.remoteDescription: Optional[RTCSessionDescription] = None
        self.connectionState = "new"
        self.close_count = 0

    def on(self, event: str):
        def decorator(handler):
            self.handlers[event] = handler
            return handler
        return decorator

    async def emit(self, event: str, *args) -> None:
        result = self.handlers[event](*args)
        if inspect.isawaitable(result):
            await result

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    def addTrack(self, track):
        self._check("addTrack")
        self.tracks.append(track)

    async def createOffer(self):
        self._check("createOffer")
        return RTCSessionDescription(sdp="v=0 local-offer", type="offer")

    async def createAnswer(self):
        self._check("createAnswer")
        return RTCSessionDescription(sdp="v=0 local-answer", type="answer")

    async def setLocalDescription(self, description):
        self._check("setLocalDescription")
        self.localDescription = description

    async def setRemoteDescription(self, description):
        self._check("setRemoteDescription")
        self.remoteDescription = description

    async def addIceCandidate(self, ice_candidate):
        self._check("addIceCandidate")
        self.candidates.append(ice_candidate)

    async def close(self):
        self.calls.append("close")
        self.close_count += 1
        self.connectionState = "closed"


class TransportFactory:
    """생성한 FakeTransport를 모두 보관하는 팩토리."""

    def __init__(self, fail_on: tuple = ()):
        self.fail_on = fail_on
        self.created: List[FakeTransport] = []

    def __call__(self) -> FakeTransport:
        transport = FakeTransport(self.fail_on)
        self.created.append(transport)
        return transport


# ============================================================
# Signaling / media fakes
# ============================================================

class FakeSignalingChannel:
    """SignalingChannel 대역. 보낸 envelope는 sent에, 받을 envelope는 deliver()로 넣습니다."""

    def __init__(self, connect_error: Optional[Exception] = None):
        self.connect_error = connect_error
        self.sent = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.is_open = False
        self.close_count = 0

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.is_open = True

    async def send(self, envelope) -> None:
        if not self.is_open:
            raise SignalingError("channel is not open")
        self.sent.append(envelope)

    async def messages(self):
        while True:
            item = await self.inbox.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.close_count += 1
        if self.is_open:
            self.is_open = False
            self.inbox.put_nowait(None)

    def deliver(self, envelope) -> None:
        self.inbox.put_nowait(envelope)

    def lose(self, reason: str = "relay connection lost") -> None:
        self.is_open = False
        self.inbox.put_nowait(SignalingError(reason))

    def sent_of(self, kind: str) -> list:
        return [envelope for envelope in self.sent if envelope.type == kind]


class FakeMediaSource:
    """MediaSource 대역."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.acquired = False
        self.stop_count = 0
        self._muted = False
        self._video_off = False

    async def acquire(self) -> None:
        if self.error is not None:
            raise self.error
        self.acquired = True

    def subscribe(self) -> list:
        return ["local-audio", "local-video"]

    @property
    def is_muted(self) -> bool:
        return self._muted

    @property
    def is_video_off(self) -> bool:
        return self._video_off

    def toggle_mute(self) -> bool:
        self._muted = not self._muted
        return self._muted

    def toggle_video(self) -> bool:
        self._video_off = not self._video_off
        return self._video_off

    def stop(self) -> None:
        self.stop_count += 1
        self.acquired = False


# ============================================================
# In-memory relay
# ============================================================

class FakeServerSocket:
    """릴레이 라우터 쪽 WebSocket 대역."""

    def __init__(self, client: "RelayClientChannel"):
        self.client = client
        self.incoming: asyncio.Queue = asyncio.Queue()

    async def accept(self) -> None:
        pass

    async def receive_text(self) -> str:
        item = await self.incoming.get()
        if item is None:
            raise WebSocketDisconnect(code=1000)
        return item

    async def send_json(self, data: dict) -> None:
        if not self.client.is_open:
            raise RuntimeError("client socket closed")
        self.client.deliver(parse_envelope(data))

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.incoming.put_nowait(None)


class RelayClientChannel(FakeSignalingChannel):
    """실제 시그널링 라우터(routes.signaling)와 메모리 안에서 연결되는 채널."""

    def __init__(self):
        super().__init__()
        self.server_socket = FakeServerSocket(self)
        self.server_task: Optional[asyncio.Task] = None

    async def connect(self) -> None:
        from routes.signaling import websocket_endpoint

        self.is_open = True
        self.server_task = asyncio.create_task(websocket_endpoint(self.server_socket))

    async def send(self, envelope) -> None:
        await super().send(envelope)
        self.server_socket.incoming.put_nowait(to_json(envelope))

    async def close(self) -> None:
        was_open = self.is_open
        await super().close()
        if was_open:
            self.server_socket.incoming.put_nowait(None)
        if self.server_task is not None:
            await self.server_task

    def drop(self) -> None:
        """릴레이 쪽에서 연결이 끊긴 상황을 만듭니다."""
        self.server_socket.incoming.put_nowait(None)
        self.lose()


@pytest.fixture
def room_manager():
    """routes.signaling에 연결된 새 RoomManager."""
    from routes import signaling

    manager = RoomManager()
    signaling.init_managers(manager)
    yield manager
    signaling.init_managers(None)


@pytest.fixture
def settings():
    return CallSettings(MEDIA_SOURCE="synthetic", SIGNALING_URL="ws://relay.test/ws")


@pytest.fixture
def transports():
    return TransportFactory()


@pytest.fixture
def fake_media_error():
    return MediaAccessError("Failed to access camera and microphone: permission denied")

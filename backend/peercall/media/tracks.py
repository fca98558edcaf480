"""로컬 미디어 트랙 래퍼 모듈.

aiortc의 MediaStreamTrack에는 브라우저의 ``track.enabled`` 같은 플래그가 없으므로,
원본 트랙을 감싸서 비활성화 시 무음/검은 화면 프레임을 대신 내보냅니다.
이미 연결된 피어 연결은 트랙을 그대로 유지하므로 재협상이 필요 없습니다.
"""

import logging
from typing import Dict, Tuple

import numpy as np
from av import AudioFrame, VideoFrame
from aiortc import MediaStreamTrack

logger = logging.getLogger(__name__)


class ToggleableTrack(MediaStreamTrack):
    """enabled 플래그를 가진 릴레이 트랙의 기반 클래스.

    Attributes:
        track (MediaStreamTrack): 원본 캡처 트랙
        enabled (bool): False이면 빈 프레임을 내보냄
    """

    def __init__(self, track: MediaStreamTrack):
        super().__init__()
        self.track = track
        self.enabled = True

    async def recv(self):
        frame = await self.track.recv()
        if self.enabled:
            return frame
        return self._blank(frame)

    def _blank(self, frame):
        raise NotImplementedError

    def stop(self) -> None:
        super().stop()
        self.track.stop()


class ToggleableAudioTrack(ToggleableTrack):
    """음소거 시 같은 형식의 무음 프레임을 내보내는 오디오 트랙."""

    kind = "audio"

    def _blank(self, frame: AudioFrame) -> AudioFrame:
        silent = AudioFrame(format=frame.format.name, layout=frame.layout.name, samples=frame.samples)
        for p in silent.planes:
            p.update(bytes(p.buffer_size))
        silent.sample_rate = frame.sample_rate
        silent.pts = frame.pts
        silent.time_base = frame.time_base
        return silent


class ToggleableVideoTrack(ToggleableTrack):
    """비디오 끔 상태에서 같은 크기의 검은 프레임을 내보내는 비디오 트랙."""

    kind = "video"

    def __init__(self, track: MediaStreamTrack):
        super().__init__(track)
        # (width, height) -> black rgb24 buffer
        self._black_cache: Dict[Tuple[int, int], np.ndarray] = {}

    def _blank(self, frame: VideoFrame) -> VideoFrame:
        size = (frame.width, frame.height)
        black = self._black_cache.get(size)
        if black is None:
            black = np.zeros((frame.height, frame.width, 3), dtype=np.uint8)
            self._black_cache = {size: black}
        blank = VideoFrame.from_ndarray(black, format="rgb24")
        blank.pts = frame.pts
        blank.time_base = frame.time_base
        return blank


def wrap_track(track: MediaStreamTrack) -> ToggleableTrack:
    """트랙 종류에 맞는 래퍼를 반환합니다."""
    if track.kind == "audio":
        return ToggleableAudioTrack(track)
    if track.kind == "video":
        return ToggleableVideoTrack(track)
    raise ValueError(f"unsupported track kind: {track.kind}")

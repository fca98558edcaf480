"""로컬 미디어 소스 모듈.

카메라/마이크(또는 미디어 파일, 합성 테스트 트랙)를 열어 피어 연결에 붙일
로컬 트랙을 제공합니다. 모든 PeerSession이 같은 트랙을 읽기 전용으로 공유하며,
트랙의 enabled 상태는 MediaSource만 변경합니다.
"""

import logging
import platform
from typing import List, Optional

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer, MediaRelay
from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack

from ..config import CallSettings, get_call_settings
from ..shared.exceptions import MediaAccessError
from .tracks import ToggleableAudioTrack, ToggleableTrack, ToggleableVideoTrack, wrap_track

logger = logging.getLogger(__name__)


class MediaSource:
    """로컬 캡처 스트림 소유자.

    Attributes:
        settings (CallSettings): 미디어 소스 종류와 해상도/프레임레이트 설정

    Examples:
        >>> media = MediaSource()
        >>> await media.acquire()
        >>> media.toggle_mute()
        True
        >>> media.stop()
    """

    def __init__(self, settings: Optional[CallSettings] = None):
        self.settings = settings or get_call_settings()
        self._players: List[MediaPlayer] = []
        # 피어 연결마다 독립적인 프레임 스트림을 주기 위한 릴레이
        self._relay = MediaRelay()
        self._audio: Optional[ToggleableAudioTrack] = None
        self._video: Optional[ToggleableVideoTrack] = None

    @property
    def is_acquired(self) -> bool:
        return self._audio is not None or self._video is not None

    @property
    def audio_track(self) -> Optional[ToggleableAudioTrack]:
        return self._audio

    @property
    def video_track(self) -> Optional[ToggleableVideoTrack]:
        return self._video

    @property
    def tracks(self) -> List[ToggleableTrack]:
        """피어 연결에 붙일 로컬 트랙 (오디오 먼저)."""
        return [t for t in (self._audio, self._video) if t is not None]

    def subscribe(self) -> List[MediaStreamTrack]:
        """피어 연결 하나에 붙일 트랙 사본을 만듭니다.

        MediaRelay.subscribe()로 소비자마다 독립적인 프레임 버퍼를 주므로
        여러 연결이 같은 원본 트랙을 나눠 읽지 않습니다. 음소거/비디오 끔은
        원본 래퍼에서 적용되므로 모든 사본에 그대로 반영됩니다.
        """
        return [self._relay.subscribe(track) for track in self.tracks]

    @property
    def is_muted(self) -> bool:
        return self._audio is not None and not self._audio.enabled

    @property
    def is_video_off(self) -> bool:
        return self._video is not None and not self._video.enabled

    async def acquire(self) -> None:
        """설정된 소스에서 로컬 트랙을 획득합니다.

        Raises:
            MediaAccessError: 장치 권한/열기 실패, 파일 없음, 트랙 없음
        """
        if self.is_acquired:
            return

        source = self.settings.MEDIA_SOURCE
        logger.info(f"[Media] 로컬 미디어 획득 중: source={source}")
        try:
            if source == "synthetic":
                audio, video = AudioStreamTrack(), VideoStreamTrack()
            elif source == "file":
                audio, video = self._open_file()
            else:
                audio, video = self._open_devices()
        except MediaAccessError:
            self._stop_players()
            raise
        except Exception as e:
            self._stop_players()
            raise MediaAccessError(f"Failed to access camera and microphone: {e}") from e

        if audio is None and video is None:
            self._stop_players()
            raise MediaAccessError("no audio or video track available")

        self._audio = wrap_track(audio) if audio is not None else None
        self._video = wrap_track(video) if video is not None else None
        logger.info(f"[Media] 로컬 트랙 준비 완료: {[t.kind for t in self.tracks]}")

    def _open_file(self):
        if not self.settings.MEDIA_FILE:
            raise MediaAccessError("MEDIA_FILE is not configured")
        player = MediaPlayer(self.settings.MEDIA_FILE, loop=True)
        self._players.append(player)
        return player.audio, player.video

    def _open_devices(self):
        audio: Optional[MediaStreamTrack] = None
        video: Optional[MediaStreamTrack] = None

        if self.settings.VIDEO_DEVICE:
            options = {
                "video_size": f"{self.settings.VIDEO_WIDTH}x{self.settings.VIDEO_HEIGHT}",
                "framerate": str(self.settings.VIDEO_FRAME_RATE),
            }
            video_format = self.settings.VIDEO_FORMAT
            if platform.system() == "Darwin" and video_format == "v4l2":
                video_format = "avfoundation"
            player = MediaPlayer(self.settings.VIDEO_DEVICE, format=video_format, options=options)
            self._players.append(player)
            video = player.video

        if self.settings.AUDIO_DEVICE:
            player = MediaPlayer(self.settings.AUDIO_DEVICE, format=self.settings.AUDIO_FORMAT)
            self._players.append(player)
            audio = player.audio

        return audio, video

    def toggle_mute(self) -> bool:
        """오디오 트랙을 켜고 끕니다.

        Returns:
            bool: 변경 후 음소거 여부. 오디오 트랙이 없으면 False
        """
        if self._audio is None:
            logger.debug("[Media] 오디오 트랙 없음 - 음소거 토글 무시")
            return False
        self._audio.enabled = not self._audio.enabled
        logger.info(f"[Media] 음소거: {self.is_muted}")
        return self.is_muted

    def toggle_video(self) -> bool:
        """비디오 트랙을 켜고 끕니다.

        Returns:
            bool: 변경 후 비디오 꺼짐 여부. 비디오 트랙이 없으면 False
        """
        if self._video is None:
            logger.debug("[Media] 비디오 트랙 없음 - 비디오 토글 무시")
            return False
        self._video.enabled = not self._video.enabled
        logger.info(f"[Media] 비디오 꺼짐: {self.is_video_off}")
        return self.is_video_off

    def stop(self) -> None:
        """모든 로컬 트랙과 장치를 정리합니다. 여러 번 호출해도 안전합니다."""
        for track in self.tracks:
            track.stop()
        self._audio = None
        self._video = None
        self._stop_players()

    def _stop_players(self) -> None:
        players, self._players = self._players, []
        for player in players:
            for track in (player.audio, player.video):
                if track is not None:
                    track.stop()
        if players:
            logger.info("[Media] 로컬 미디어 장치 해제")

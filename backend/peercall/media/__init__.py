"""로컬 미디어 모듈.

Classes:
    MediaSource: 로컬 캡처 스트림과 음소거/비디오 토글
    ToggleableAudioTrack: 음소거 시 무음 프레임을 내보내는 오디오 트랙
    ToggleableVideoTrack: 비디오 끔 상태에서 검은 프레임을 내보내는 비디오 트랙
"""

from .source import MediaSource
from .tracks import ToggleableTrack, ToggleableAudioTrack, ToggleableVideoTrack, wrap_track

__all__ = [
    "MediaSource",
    "ToggleableTrack",
    "ToggleableAudioTrack",
    "ToggleableVideoTrack",
    "wrap_track",
]

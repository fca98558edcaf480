"""통화 클라이언트 설정 모듈.

pydantic-settings를 사용하여 환경 변수 / config/.env 파일을 Python 객체로 매핑합니다.
ICE 서버와 협상 타임아웃은 webrtc/config.py에서 관리합니다.
"""

import logging
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env 파일 로드
_env_path = Path(__file__).parent.parent / "config" / ".env"
load_dotenv(_env_path)

MEDIA_SOURCES = ("device", "file", "synthetic")


class CallSettings(BaseSettings):
    """통화 클라이언트 설정 클래스."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 시그널링 릴레이
    SIGNALING_URL: str = Field(
        default="ws://localhost:8000/ws",
        description="릴레이 WebSocket URL"
    )

    SIGNALING_OPEN_TIMEOUT: float = Field(
        default=10.0,
        description="릴레이 연결 타임아웃 (초)"
    )

    SIGNALING_PING_INTERVAL: float = Field(
        default=20.0,
        description="WebSocket ping 주기 (초)"
    )

    SIGNALING_PING_TIMEOUT: float = Field(
        default=10.0,
        description="WebSocket pong 대기 시간 (초)"
    )

    # 로컬 미디어
    MEDIA_SOURCE: str = Field(
        default="device",
        description="로컬 미디어 소스: device | file | synthetic"
    )

    MEDIA_FILE: str = Field(
        default="",
        description="MEDIA_SOURCE=file일 때 재생할 파일 경로"
    )

    VIDEO_DEVICE: str = Field(
        default="/dev/video0",
        description="카메라 장치 (빈 값이면 비디오 없음)"
    )

    VIDEO_FORMAT: str = Field(
        default="v4l2",
        description="카메라 입력 포맷 (v4l2, avfoundation, dshow ...)"
    )

    AUDIO_DEVICE: str = Field(
        default="default",
        description="마이크 장치 (빈 값이면 오디오 없음)"
    )

    AUDIO_FORMAT: str = Field(
        default="pulse",
        description="마이크 입력 포맷 (pulse, alsa, avfoundation ...)"
    )

    VIDEO_WIDTH: int = Field(default=1280, description="요청 해상도 너비")
    VIDEO_HEIGHT: int = Field(default=720, description="요청 해상도 높이")
    VIDEO_FRAME_RATE: int = Field(default=30, description="요청 프레임레이트")

    # 로깅 설정
    LOG_LEVEL: str = Field(
        default="INFO",
        description="로그 레벨"
    )

    LOG_FILE: str = Field(
        default="",
        description="로그 파일 경로 (빈 값이면 콘솔만)"
    )

    @field_validator("MEDIA_SOURCE")
    @classmethod
    def validate_media_source(cls, v: str) -> str:
        """미디어 소스 유효성 검증"""
        if v.lower() not in MEDIA_SOURCES:
            raise ValueError(f"MEDIA_SOURCE는 {MEDIA_SOURCES} 중 하나여야 합니다.")
        return v.lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """로그 레벨 유효성 검증"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL은 {allowed} 중 하나여야 합니다.")
        return v.upper()


@lru_cache()
def get_call_settings() -> CallSettings:
    """환경 변수에서 읽은 설정 객체를 반환합니다."""
    settings = CallSettings()
    logger.info(f"[Call Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
    logger.info(f"[Call Config] 릴레이: {settings.SIGNALING_URL}, 미디어 소스: {settings.MEDIA_SOURCE}")
    return settings

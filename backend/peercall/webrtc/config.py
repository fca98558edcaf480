"""WebRTC 모듈 설정.

ICE(STUN/TURN) 서버 목록과 협상/입장 타임아웃을 config/.env 환경변수에서 읽습니다.

Environment:
    STUN_SERVER_URL: 추가 STUN 서버 (쉼표로 여러 개 지정 가능)
    USE_DEFAULT_STUN: 공개 Google STUN 사용 여부 (기본 true)
    TURN_SERVER_URL / TURN_USERNAME / TURN_CREDENTIAL: TURN 릴레이 (셋 다 있어야 사용)
    NEGOTIATION_TIMEOUT: offer 후 stable까지 기다리는 시간 (초, 0이면 무제한)
    JOIN_TIMEOUT: room-joined 수신 대기 시간 (초)
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from aiortc import RTCConfiguration, RTCIceServer

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)

GOOGLE_STUN_SERVERS = (
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"[WebRTC Config] {name}={value!r} 해석 실패, 기본값 {default} 사용")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_urls(name: str) -> Tuple[str, ...]:
    return tuple(url.strip() for url in os.getenv(name, "").split(",") if url.strip())


@dataclass(frozen=True)
class ICEServerConfig:
    """ICE 서버 설정.

    Attributes:
        STUN_URLS: 직접 지정한 STUN 서버 (GOOGLE_STUN_SERVERS보다 먼저 사용)
        USE_DEFAULT_STUN: 공개 Google STUN 추가 여부
        TURN_URLS: TURN 서버 URL (같은 계정으로 묶임)
    """

    STUN_URLS: Tuple[str, ...] = _env_urls("STUN_SERVER_URL")
    USE_DEFAULT_STUN: bool = _env_bool("USE_DEFAULT_STUN", True)

    TURN_URLS: Tuple[str, ...] = _env_urls("TURN_SERVER_URL")
    TURN_USERNAME: Optional[str] = os.getenv("TURN_USERNAME") or None
    TURN_CREDENTIAL: Optional[str] = os.getenv("TURN_CREDENTIAL") or None

    @property
    def has_turn_server(self) -> bool:
        return bool(self.TURN_URLS) and bool(self.TURN_USERNAME) and bool(self.TURN_CREDENTIAL)

    def stun_urls(self) -> List[str]:
        urls = list(self.STUN_URLS)
        if self.USE_DEFAULT_STUN:
            urls.extend(u for u in GOOGLE_STUN_SERVERS if u not in urls)
        return urls


@dataclass(frozen=True)
class ConnectionConfig:
    """WebRTC 연결 관련 설정."""

    # have-local-offer 진입 후 stable까지 기다리는 시간 (초, 0이면 무제한)
    NEGOTIATION_TIMEOUT: float = _env_float("NEGOTIATION_TIMEOUT", 30.0)

    # join() 후 room-joined 수신까지 기다리는 시간 (초)
    JOIN_TIMEOUT: float = _env_float("JOIN_TIMEOUT", 10.0)


def build_ice_servers(config: Optional[ICEServerConfig] = None) -> List[RTCIceServer]:
    """설정된 STUN/TURN 서버로 RTCIceServer 목록을 만듭니다.

    STUN 서버마다 항목 하나, TURN은 계정이 완전할 때만 URL을 묶어 항목 하나를 추가합니다.

    Args:
        config: ICE 서버 설정. None이면 환경변수에서 읽은 ice_config

    Returns:
        List[RTCIceServer]: STUN 먼저, TURN 마지막
    """
    config = config or ice_config
    ice_servers = [RTCIceServer(urls=[url]) for url in config.stun_urls()]

    if config.has_turn_server:
        ice_servers.append(RTCIceServer(
            urls=list(config.TURN_URLS),
            username=config.TURN_USERNAME,
            credential=config.TURN_CREDENTIAL,
        ))
    elif config.TURN_URLS:
        logger.warning("[WebRTC Config] TURN_USERNAME/TURN_CREDENTIAL 없음 - TURN 서버 무시")

    return ice_servers


def build_rtc_configuration(ice_servers: Optional[List[RTCIceServer]] = None) -> RTCConfiguration:
    """RTCPeerConnection 생성용 설정을 만듭니다.

    Args:
        ice_servers: 명시적 ICE 서버 목록. None이면 환경 설정을 사용하고,
            빈 리스트면 host 후보만 사용합니다.
    """
    if ice_servers is None:
        ice_servers = build_ice_servers()
    return RTCConfiguration(iceServers=ice_servers)


ice_config = ICEServerConfig()
connection_config = ConnectionConfig()


logger.info(f"[WebRTC Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
logger.info(f"[WebRTC Config] STUN 서버: {ice_config.stun_urls() or '없음 (host 후보만)'}")
logger.info(f"[WebRTC Config] TURN 사용: {ice_config.has_turn_server}")
logger.info(f"[WebRTC Config] 협상 타임아웃: {connection_config.NEGOTIATION_TIMEOUT}s, 입장 타임아웃: {connection_config.JOIN_TIMEOUT}s")

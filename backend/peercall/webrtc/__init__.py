"""WebRTC 모듈.

피어 협상 상태 머신과 세션 레지스트리를 제공합니다.

Classes:
    PeerSession: 원격 참가자 한 명과의 offer/answer/ICE 협상
    NegotiationState: 협상 상태
    SessionRegistry: 참가자 ID → PeerSession 관리

Config:
    ice_config: ICE 서버 설정
    connection_config: 협상 타임아웃 설정
"""

from .peer_session import PeerSession, NegotiationState
from .session_registry import SessionRegistry
from .config import (
    ice_config,
    connection_config,
    ICEServerConfig,
    ConnectionConfig,
    build_ice_servers,
    build_rtc_configuration,
)

__all__ = [
    # Classes
    "PeerSession",
    "NegotiationState",
    "SessionRegistry",
    # Config
    "ice_config",
    "connection_config",
    "ICEServerConfig",
    "ConnectionConfig",
    "build_ice_servers",
    "build_rtc_configuration",
]

"""peercall 예외 계층.

룸 수준 오류(미디어 획득 실패, 시그널링 채널 손실)만 호출자에게 올라가고,
피어 단위 오류(NegotiationError)는 PeerSession/SessionRegistry 경계 안에서
이벤트로만 보고됩니다.
"""

from typing import Optional


class PeerCallError(Exception):
    """모든 peercall 오류의 기반 클래스."""


class MediaAccessError(PeerCallError):
    """카메라/마이크 권한 또는 장치 오류. 입장에 치명적이며 자동 재시도하지 않음."""


class SignalingError(PeerCallError):
    """시그널링 채널 연결/전송 실패 또는 연결 손실."""


class EnvelopeError(SignalingError):
    """해석할 수 없는 시그널링 메시지."""


class NegotiationError(PeerCallError):
    """offer/answer 생성 또는 description 설정 실패 (피어 단위)."""

    def __init__(self, peer_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.peer_id = peer_id
        self.cause = cause


class NegotiationTimeoutError(NegotiationError):
    """제한 시간 안에 stable 상태에 도달하지 못함."""


class InvalidStateError(PeerCallError):
    """현재 상태에서 허용되지 않는 호출."""


class InvalidJoinRequestError(PeerCallError, ValueError):
    """룸 ID 또는 표시 이름 형식 오류."""

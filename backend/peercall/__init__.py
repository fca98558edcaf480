"""peercall - 1:1 화상 통화 피어 연결 시그널링 코디네이터.

Subpackages:
    signaling: 릴레이 WebSocket 채널, envelope 정의, 입력값 검증
    media: 로컬 캡처 스트림과 음소거/비디오 토글
    webrtc: 피어 협상 상태 머신과 세션 레지스트리
    room: 룸 세션 오케스트레이터와 view model
    relay: 릴레이 서버의 룸 멤버십 관리
    shared: 공용 DTO와 예외 계층
"""

__version__ = "0.1.0"

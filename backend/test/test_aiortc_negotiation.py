"""실제 aiortc RTCPeerConnection 두 개를 PeerSession으로 연결하는 루프백 테스트.

ICE 서버 없이 host 후보만 사용하므로 STUN/TURN 접근이 필요 없습니다.
연결 성립 여부는 호스트 네트워크 인터페이스에 따라 달라서 협상 결과까지만 확인합니다.
"""

from aiortc import RTCPeerConnection
from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack

from conftest import wait_for
from peercall.signaling import envelopes
from peercall.webrtc.config import build_rtc_configuration
from peercall.webrtc.peer_session import NegotiationState, PeerSession


def local_transport() -> RTCPeerConnection:
    return RTCPeerConnection(configuration=build_rtc_configuration([]))


async def test_loopback_negotiation_reaches_stable():
    # peer_id -> 그 피어를 대표하는 상대편 세션
    sessions = {}
    remote_kinds = {"alice": [], "bob": []}

    async def deliver(envelope):
        target = sessions[envelope.data.target]
        if envelope.type == envelopes.OFFER:
            target.accept_offer(envelope.data.sdp_offer)
        elif envelope.type == envelopes.ANSWER:
            target.accept_answer(envelope.data.sdp_answer)
        elif envelope.type == envelopes.ICE_CANDIDATE:
            target.add_remote_candidate(envelope.data.candidate)

    # alice 쪽에서 bob을 대표하는 세션, bob 쪽에서 alice를 대표하는 세션
    alice_side = PeerSession(
        "bob", [AudioStreamTrack(), VideoStreamTrack()], deliver,
        transport_factory=local_transport, negotiation_timeout=20,
        on_remote_track=lambda pid, track: remote_kinds["alice"].append(track.kind),
    )
    bob_side = PeerSession(
        "alice", [AudioStreamTrack(), VideoStreamTrack()], deliver,
        transport_factory=local_transport, negotiation_timeout=20,
        on_remote_track=lambda pid, track: remote_kinds["bob"].append(track.kind),
    )
    sessions["bob"] = bob_side
    sessions["alice"] = alice_side

    try:
        assert await bob_side.initiate_offer() is True

        await wait_for(lambda: alice_side.state is NegotiationState.STABLE, timeout=10)
        await wait_for(lambda: bob_side.state is NegotiationState.STABLE, timeout=10)
        assert sorted(remote_kinds["alice"]) == ["audio", "video"]
        assert sorted(remote_kinds["bob"]) == ["audio", "video"]
    finally:
        await alice_side.close()
        await bob_side.close()

    assert alice_side.transport is None
    assert bob_side.transport is None

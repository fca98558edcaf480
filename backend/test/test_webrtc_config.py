"""ICE 서버 설정 테스트."""

from peercall.webrtc.config import (
    GOOGLE_STUN_SERVERS,
    ICEServerConfig,
    build_ice_servers,
    build_rtc_configuration,
)


def urls(servers):
    return [server.urls for server in servers]


def test_default_stun_only():
    config = ICEServerConfig(STUN_URLS=(), USE_DEFAULT_STUN=True, TURN_URLS=())

    assert urls(build_ice_servers(config)) == [[url] for url in GOOGLE_STUN_SERVERS]


def test_custom_stun_comes_first_without_duplicates():
    config = ICEServerConfig(
        STUN_URLS=("stun:stun.example.org:3478", GOOGLE_STUN_SERVERS[0]),
        USE_DEFAULT_STUN=True,
        TURN_URLS=(),
    )

    assert config.stun_urls() == [
        "stun:stun.example.org:3478",
        GOOGLE_STUN_SERVERS[0],
        GOOGLE_STUN_SERVERS[1],
    ]


def test_turn_requires_credentials():
    partial = ICEServerConfig(
        STUN_URLS=(), USE_DEFAULT_STUN=False,
        TURN_URLS=("turn:turn.example.org:3478",), TURN_USERNAME="user", TURN_CREDENTIAL=None,
    )
    full = ICEServerConfig(
        STUN_URLS=(), USE_DEFAULT_STUN=False,
        TURN_URLS=("turn:turn.example.org:3478", "turns:turn.example.org:5349"),
        TURN_USERNAME="user", TURN_CREDENTIAL="secret",
    )

    assert build_ice_servers(partial) == []
    [turn] = build_ice_servers(full)
    assert turn.urls == ["turn:turn.example.org:3478", "turns:turn.example.org:5349"]
    assert turn.username == "user"
    assert turn.credential == "secret"


def test_empty_list_means_host_candidates_only():
    assert build_rtc_configuration([]).iceServers == []

"""로컬 미디어 트랙/소스 테스트 (합성 트랙 사용)."""

import numpy as np
import pytest
from aiortc.mediastreams import AudioStreamTrack, VideoStreamTrack

from peercall.config import CallSettings
from peercall.media import MediaSource
from peercall.media.tracks import ToggleableAudioTrack, ToggleableVideoTrack, wrap_track
from peercall.shared.exceptions import MediaAccessError


async def test_disabled_video_track_sends_black_frames():
    track = ToggleableVideoTrack(VideoStreamTrack())

    live = await track.recv()
    track.enabled = False
    blank = await track.recv()

    assert (blank.width, blank.height) == (live.width, live.height)
    assert blank.pts > live.pts
    assert not blank.to_ndarray(format="rgb24").any()
    track.stop()


async def test_disabled_audio_track_sends_silence():
    track = ToggleableAudioTrack(AudioStreamTrack())
    track.enabled = False

    frame = await track.recv()

    assert frame.samples > 0
    assert not np.any(frame.to_ndarray())
    track.stop()


def test_wrap_track_by_kind():
    assert isinstance(wrap_track(AudioStreamTrack()), ToggleableAudioTrack)
    assert isinstance(wrap_track(VideoStreamTrack()), ToggleableVideoTrack)


@pytest.fixture
def synthetic():
    return MediaSource(CallSettings(MEDIA_SOURCE="synthetic"))


class TestMediaSource:
    async def test_acquire_synthetic(self, synthetic):
        await synthetic.acquire()

        assert synthetic.is_acquired
        assert [t.kind for t in synthetic.tracks] == ["audio", "video"]
        synthetic.stop()

    async def test_toggles(self, synthetic):
        await synthetic.acquire()

        assert synthetic.toggle_mute() is True
        assert synthetic.audio_track.enabled is False
        assert synthetic.toggle_mute() is False
        assert synthetic.toggle_video() is True
        assert synthetic.is_video_off
        synthetic.stop()

    async def test_subscribe_gives_one_copy_per_track(self, synthetic):
        await synthetic.acquire()

        first = synthetic.subscribe()
        second = synthetic.subscribe()

        assert [t.kind for t in first] == ["audio", "video"]
        assert first[0] is not second[0]
        synthetic.stop()

    async def test_stop_is_idempotent(self, synthetic):
        await synthetic.acquire()

        synthetic.stop()
        synthetic.stop()

        assert not synthetic.is_acquired
        assert synthetic.tracks == []

    def test_toggles_without_tracks(self, synthetic):
        assert synthetic.toggle_mute() is False
        assert synthetic.toggle_video() is False
        assert not synthetic.is_muted

    async def test_file_source_without_file(self):
        media = MediaSource(CallSettings(MEDIA_SOURCE="file", MEDIA_FILE=""))

        with pytest.raises(MediaAccessError):
            await media.acquire()

        assert not media.is_acquired

"""터미널 통화 클라이언트.

RoomCoordinator로 룸에 입장한 뒤 표준 입력으로 채팅과 미디어 토글을 처리합니다.
상대 트랙은 MediaBlackhole로 소비하며 화면에 그리지 않습니다.

Commands:
    /mute   음소거 토글
    /video  비디오 토글
    /leave  통화 종료
    그 외 입력은 채팅 메시지로 전송

Usage:
    cd backend
    uv run python scripts/join_call.py AB12CD alice
    uv run python scripts/join_call.py AB12CD bob --url ws://192.168.0.10:8000/ws --media synthetic
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List

from aiortc.contrib.media import MediaBlackhole

sys.path.insert(0, str(Path(__file__).parent.parent))

from peercall.config import get_call_settings
from peercall.logging_config import setup_logging
from peercall.room import RoomCoordinator, RoomState, RoomViewModel
from peercall.room.view_model import (
    CHANNEL_LOST_EVENT,
    CHAT_EVENT,
    ERROR_EVENT,
    MEDIA_EVENT,
    PEER_FAILED_EVENT,
    REMOTE_TRACK_EVENT,
    ROSTER_EVENT,
)
from peercall.shared.exceptions import PeerCallError

logger = logging.getLogger(__name__)


class TerminalView:
    """view model 이벤트를 터미널에 출력하고 상대 트랙을 소비합니다."""

    def __init__(self, coordinator: RoomCoordinator):
        self.coordinator = coordinator
        self._printed_chat = 0
        self._sinks: Dict[str, List[MediaBlackhole]] = {}
        self.closed = asyncio.Event()

    def __call__(self, event: str, view: RoomViewModel) -> None:
        if event == ROSTER_EVENT:
            names = ", ".join(p.name for p in view.participants)
            print(f"* 참가자 ({len(view.participants)}명): {names}")
        elif event == CHAT_EVENT:
            for message in view.chat_log[self._printed_chat:]:
                print(f"[{message.timestamp[11:19]}] {message.sender_name}: {message.body}")
            self._printed_chat = len(view.chat_log)
        elif event == REMOTE_TRACK_EVENT:
            for peer_id in view.remote_tracks:
                self._attach_sinks(peer_id)
        elif event == MEDIA_EVENT:
            print(f"* 음소거: {view.is_muted}, 비디오 꺼짐: {view.is_video_off}")
        elif event == PEER_FAILED_EVENT:
            for peer_id, message in view.peer_errors.items():
                print(f"! 피어 {peer_id[:8]} 연결 실패: {message}")
        elif event == ERROR_EVENT:
            print(f"! 오류: {view.last_error}")
        elif event == CHANNEL_LOST_EVENT:
            print(f"! 릴레이 연결이 끊겼습니다: {view.last_error}")
            self.closed.set()

    def _attach_sinks(self, peer_id: str) -> None:
        sinks = self._sinks.setdefault(peer_id, [])
        for track in self.coordinator.remote_media(peer_id)[len(sinks):]:
            sink = MediaBlackhole()
            sink.addTrack(track)
            sinks.append(sink)
            asyncio.ensure_future(sink.start())
            print(f"* 피어 {peer_id[:8]} {track.kind} 수신 시작")

    async def stop(self) -> None:
        sinks, self._sinks = self._sinks, {}
        for peer_sinks in sinks.values():
            for sink in peer_sinks:
                await sink.stop()


async def read_commands(coordinator: RoomCoordinator, view: TerminalView) -> None:
    loop = asyncio.get_running_loop()
    while not view.closed.is_set():
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        line = line.strip()
        if line == "/leave":
            break
        if line == "/mute":
            coordinator.toggle_mute()
        elif line == "/video":
            coordinator.toggle_video()
        elif line:
            await coordinator.send_chat(line)


async def run(room_id: str, display_name: str) -> int:
    coordinator = RoomCoordinator()
    view = TerminalView(coordinator)
    coordinator.subscribe(view)

    try:
        await coordinator.join(room_id, display_name)
        await coordinator.wait_joined()
    except PeerCallError as e:
        print(f"! 입장 실패: {e}")
        return 1

    print(f"* 룸 {room_id} 입장 완료. /mute, /video, /leave 명령을 사용할 수 있습니다.")
    commands = asyncio.ensure_future(read_commands(coordinator, view))
    lost = asyncio.ensure_future(view.closed.wait())
    try:
        await asyncio.wait([commands, lost], return_when=asyncio.FIRST_COMPLETED)
    finally:
        commands.cancel()
        lost.cancel()
        await view.stop()
        if coordinator.state in (RoomState.CONNECTING, RoomState.JOINED):
            await coordinator.leave()
    print("* 통화 종료")
    return 0


def main():
    parser = argparse.ArgumentParser(description="peercall 터미널 통화 클라이언트")
    parser.add_argument("room_id", help="입장할 룸 ID (6~8자 영숫자)")
    parser.add_argument("display_name", help="표시 이름 (3~20자, 영문/숫자/_)")
    parser.add_argument("--url", type=str, help="릴레이 WebSocket URL (기본: SIGNALING_URL)")
    parser.add_argument("--media", choices=["device", "file", "synthetic"], help="로컬 미디어 소스")
    parser.add_argument("--file", type=str, help="--media file일 때 재생할 파일")
    parser.add_argument("--log-level", type=str, default=None, help="로그 레벨 (기본: LOG_LEVEL)")
    args = parser.parse_args()

    settings = get_call_settings()
    if args.url:
        settings.SIGNALING_URL = args.url
    if args.media:
        settings.MEDIA_SOURCE = args.media
    if args.file:
        settings.MEDIA_FILE = args.file

    setup_logging(args.log_level or settings.LOG_LEVEL, settings.LOG_FILE)
    sys.exit(asyncio.run(run(args.room_id, args.display_name)))


if __name__ == "__main__":
    main()

"""FastAPI WebRTC Signaling Relay.

1:1 화상 통화 클라이언트(peercall)를 위한 시그널링 릴레이 서버입니다.
FastAPI와 WebSocket을 사용하여 룸 멤버십을 관리하고 시그널링 메시지를
같은 룸의 참가자에게 중계합니다. 미디어는 릴레이를 거치지 않고 피어끼리 직접 연결됩니다.

주요 기능:
    - 룸 기반 참가자 관리 (룸당 최대 MAX_PARTICIPANTS명)
    - offer/answer/ICE candidate 중계
    - 채팅 메시지 브로드캐스트
    - 실시간 참가자 입/퇴장 알림
    - 룸 대시보드 REST API

Run:
    uvicorn app:app --host 0.0.0.0 --port 8000
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# config/.env 환경변수 로드 (routes가 import 시점에 MAX_PARTICIPANTS를 읽음)
load_dotenv(Path(__file__).parent / "config" / ".env")

from peercall.logging_config import setup_logging
from peercall.relay import RoomManager
from routes import health_router, rooms_router, signaling_router, init_signaling_managers

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "")

# 개발 환경에서는 로컬 네트워크 전체 허용
ALLOWED_ORIGIN_REGEX = os.getenv(
    "ALLOWED_ORIGIN_REGEX",
    r"^https?://(localhost|127\.0\.0\.1|192\.168\.\d{1,3}\.\d{1,3}|172\.\d{1,3}\.\d{1,3}\.\d{1,3})(:\d+)?$",
)

setup_logging(LOG_LEVEL, LOG_FILE)
logger = logging.getLogger(__name__)

# 글로벌 매니저 인스턴스
room_manager = RoomManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """서버 시작/종료 시 룸 상태를 기록합니다."""
    logger.info("[Relay] 시그널링 릴레이 시작")

    yield

    logger.info(f"[Relay] 서버 종료 중... (활성 룸 {len(room_manager.rooms)}개)")
    room_manager.rooms.clear()
    room_manager.peer_to_room.clear()


app = FastAPI(title="peercall Signaling Relay", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=ALLOWED_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록
app.include_router(health_router)
app.include_router(rooms_router)
app.include_router(signaling_router)

# WebSocket 시그널링 라우터에 매니저 인스턴스 전달
init_signaling_managers(room_manager)


@app.get("/")
async def root():
    """서버 상태 확인 엔드포인트.

    Returns:
        dict: status, service 키를 가진 상태 정보
    """
    return {"status": "ok", "service": "peercall Signaling Relay"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))

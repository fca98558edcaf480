"""
===========================================
로깅 설정 모듈
===========================================

클라이언트(scripts/join_call.py)와 릴레이(app.py)가 시작할 때 한 번 호출합니다.
- 콘솔 출력 포맷
- 로테이팅 파일 출력 (선택)
- aiortc/aioice 등 외부 라이브러리 로그 억제

사용 예시:
    from peercall.logging_config import setup_logging

    setup_logging("DEBUG", "logs/client.log")
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 연결 수립 과정에서 지나치게 상세한 로그를 남기는 라이브러리
NOISY_LOGGERS = ("aioice", "aiortc", "websockets", "uvicorn.access")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    로깅 설정 초기화

    Args:
        level: 로그 레벨 이름 (DEBUG, INFO, ...)
        log_file: 로그 파일 경로 (빈 값이면 콘솔만)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    # -----------------------------------------
    # 콘솔 핸들러
    # -----------------------------------------
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # -----------------------------------------
    # 파일 핸들러 (설정된 경우)
    # -----------------------------------------
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # 10MB마다 새 파일, 최대 5개 백업
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(log_level)

    logging.info(f"로깅 설정 완료: level={level}, file={log_file or 'None'}")

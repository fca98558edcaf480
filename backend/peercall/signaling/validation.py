"""룸 ID / 표시 이름 검증 및 룸 ID 생성."""

import re
import secrets
import string
from typing import Container, Optional

from ..shared.exceptions import InvalidJoinRequestError

ROOM_ID_MIN_LENGTH = 6
ROOM_ID_MAX_LENGTH = 8
DISPLAY_NAME_MIN_LENGTH = 3
DISPLAY_NAME_MAX_LENGTH = 20

_ROOM_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+$")
_DISPLAY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
_ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits


def validate_room_id(room_id: str) -> str:
    """룸 ID를 검증하고 그대로 반환합니다.

    Raises:
        InvalidJoinRequestError: 6~8자 영숫자가 아닌 경우
    """
    if not room_id:
        raise InvalidJoinRequestError("Room ID is required")
    if len(room_id) < ROOM_ID_MIN_LENGTH:
        raise InvalidJoinRequestError(f"Room ID must be at least {ROOM_ID_MIN_LENGTH} characters")
    if len(room_id) > ROOM_ID_MAX_LENGTH:
        raise InvalidJoinRequestError(f"Room ID must not exceed {ROOM_ID_MAX_LENGTH} characters")
    if not _ROOM_ID_PATTERN.match(room_id):
        raise InvalidJoinRequestError("Room ID can only contain letters and numbers")
    return room_id


def validate_display_name(name: str) -> str:
    """표시 이름을 검증하고 그대로 반환합니다.

    Raises:
        InvalidJoinRequestError: 3~20자 [A-Za-z0-9_]가 아닌 경우
    """
    if not name:
        raise InvalidJoinRequestError("Username is required")
    if len(name) < DISPLAY_NAME_MIN_LENGTH:
        raise InvalidJoinRequestError(f"Username must be at least {DISPLAY_NAME_MIN_LENGTH} characters")
    if len(name) > DISPLAY_NAME_MAX_LENGTH:
        raise InvalidJoinRequestError(f"Username must not exceed {DISPLAY_NAME_MAX_LENGTH} characters")
    if not _DISPLAY_NAME_PATTERN.match(name):
        raise InvalidJoinRequestError("Username can only contain letters, numbers, and underscores")
    return name


def generate_room_id(length: int = ROOM_ID_MIN_LENGTH, taken: Optional[Container[str]] = None) -> str:
    """사용 중이지 않은 새 룸 ID를 생성합니다.

    Args:
        length: 생성할 길이 (6~8)
        taken: 이미 사용 중인 룸 ID 집합

    Examples:
        >>> room_id = generate_room_id()
        >>> len(room_id)
        6
    """
    if not ROOM_ID_MIN_LENGTH <= length <= ROOM_ID_MAX_LENGTH:
        raise ValueError(f"length must be between {ROOM_ID_MIN_LENGTH} and {ROOM_ID_MAX_LENGTH}")
    taken = taken or ()
    while True:
        room_id = "".join(secrets.choice(_ROOM_ID_ALPHABET) for _ in range(length))
        if room_id not in taken:
            return room_id

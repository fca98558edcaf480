"""Lightweight shared DTOs for signaling and view-model communication."""

from pydantic import BaseModel, ConfigDict, Field


class Participant(BaseModel):
    """룸 참가자.

    id는 릴레이가 입장 시 발급하며 룸 안에서 세션 동안 고유합니다.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="릴레이가 발급한 참가자 ID")
    name: str = Field(..., description="표시 이름")


class ChatMessage(BaseModel):
    """릴레이가 전달한 채팅 메시지 (도착 순서대로 추가만 됨)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender_id: str = Field(..., alias="senderId", description="보낸 참가자 ID")
    sender_name: str = Field(..., alias="senderName", description="보낸 참가자 표시 이름")
    body: str = Field(..., description="메시지 본문")
    timestamp: str = Field(..., description="릴레이가 기록한 ISO-8601 UTC 시각")

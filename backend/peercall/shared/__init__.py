"""공유 DTO 및 예외."""

from .dto import Participant, ChatMessage
from .exceptions import (
    PeerCallError,
    MediaAccessError,
    SignalingError,
    EnvelopeError,
    NegotiationError,
    NegotiationTimeoutError,
    InvalidStateError,
    InvalidJoinRequestError,
)

__all__ = [
    "Participant",
    "ChatMessage",
    "PeerCallError",
    "MediaAccessError",
    "SignalingError",
    "EnvelopeError",
    "NegotiationError",
    "NegotiationTimeoutError",
    "InvalidStateError",
    "InvalidJoinRequestError",
]

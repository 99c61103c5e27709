# backend/core/state.py

from enum import Enum


class SessionPhase(str, Enum):
    IDLE = "idle"
    AWAITING_CAPTURE = "awaiting_capture"
    INFERRING = "inferring"
    SYNTHESIZING = "synthesizing"
    SPEAKING = "speaking"
    ENDED = "ended"


# phases in which a turn owns the session
TURN_PHASES = frozenset({
    SessionPhase.AWAITING_CAPTURE,
    SessionPhase.INFERRING,
    SessionPhase.SYNTHESIZING,
    SessionPhase.SPEAKING,
})

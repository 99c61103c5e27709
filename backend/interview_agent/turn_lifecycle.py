from dataclasses import dataclass
from enum import Enum
import time
import uuid
import logging

from core.state import SessionPhase
from interview_agent.errors import (
    CaptureFailure,
    InferenceFailure,
    InterviewAgentError,
    LockContention,
    SynthesisFailure,
    TurnTimeout,
)

logger = logging.getLogger("turn")


class TurnOutcome(str, Enum):
    COMPLETED = "completed"
    ALREADY_IN_PROGRESS = "already_in_progress"
    CAPTURE_FAILED = "capture_failed"
    INFERENCE_FAILED = "inference_failed"
    SYNTHESIS_FAILED = "synthesis_failed"
    TIMED_OUT = "timed_out"
    ABANDONED = "abandoned"
    SESSION_ENDED = "session_ended"
    NO_SESSION = "no_session"


# outcomes the UI should surface; contention is silently ignored
SURFACED_OUTCOMES = frozenset({
    TurnOutcome.CAPTURE_FAILED,
    TurnOutcome.INFERENCE_FAILED,
    TurnOutcome.SYNTHESIS_FAILED,
    TurnOutcome.TIMED_OUT,
})

_OUTCOME_ERRORS = {
    TurnOutcome.ALREADY_IN_PROGRESS: LockContention,
    TurnOutcome.CAPTURE_FAILED: CaptureFailure,
    TurnOutcome.INFERENCE_FAILED: InferenceFailure,
    TurnOutcome.SYNTHESIS_FAILED: SynthesisFailure,
    TurnOutcome.TIMED_OUT: TurnTimeout,
}


@dataclass(frozen=True)
class TurnResult:
    turn_id: str | None
    outcome: TurnOutcome
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is TurnOutcome.COMPLETED

    @property
    def surfaced(self) -> bool:
        return self.outcome in SURFACED_OUTCOMES

    def as_error(self) -> InterviewAgentError | None:
        error_cls = _OUTCOME_ERRORS.get(self.outcome)
        if error_cls is None:
            return None
        return error_cls(self.error or self.outcome.value)


class TurnLifecycle:

    def __init__(self, opening: bool = False):
        self.turn_id = str(uuid.uuid4())
        self.opening = opening
        self.stage = SessionPhase.IDLE
        self.started_at = time.monotonic()
        self.finished_at = None
        self.outcome = None

    @property
    def latency(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def advance(self, stage: SessionPhase):
        logger.info(f"[TURN {self.turn_id}] Transition {self.stage.value} → {stage.value}")
        self.stage = stage

    def finish(self, outcome: TurnOutcome, error: str | None = None) -> TurnResult:
        if self.finished_at is None:
            self.finished_at = time.monotonic()
            self.outcome = outcome
            logger.info(
                f"[TURN {self.turn_id}] FINISHED | outcome={outcome.value} latency={self.latency:.2f}s"
            )
        return TurnResult(turn_id=self.turn_id, outcome=outcome, error=error)

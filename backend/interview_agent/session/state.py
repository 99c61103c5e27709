from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple

from core.state import SessionPhase, TURN_PHASES
from interview_agent.adapters import InterviewContext
from interview_agent.schemas import Report
from interview_agent.transcript import TranscriptStore, Utterance
from interview_agent.turn import TurnLock
from interview_agent.turn_lifecycle import TurnResult


@dataclass
class SessionState:
    """
    Everything one interview session owns. Passed by reference to the
    orchestrator; only the orchestrator and the controller write `phase`.
    """
    context: InterviewContext = field(default_factory=InterviewContext)
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phase: SessionPhase = SessionPhase.IDLE
    transcript: TranscriptStore = field(default_factory=TranscriptStore)
    lock: TurnLock = field(default_factory=TurnLock)
    last_turn: Optional[TurnResult] = None
    report: Optional[Report] = None
    report_error: Optional[str] = None
    ended: asyncio.Event = field(default_factory=asyncio.Event)
    # transcript frozen at end_session; scoring retries reuse it
    final_transcript: Optional[Tuple[Utterance, ...]] = None

    @property
    def is_ended(self) -> bool:
        return self.phase is SessionPhase.ENDED

    @property
    def turn_active(self) -> bool:
        return self.phase in TURN_PHASES

    def owned_by(self, turn_id: str) -> bool:
        """Stale-result guard: True while `turn_id` may still touch this session."""
        return not self.is_ended and self.lock.owner == turn_id

    def snapshot(self) -> "SessionSnapshot":
        return SessionSnapshot(
            session_id=self.session_id,
            phase=self.phase,
            transcript=self.transcript.snapshot(),
            lock_held=self.lock.held,
            lock_owner=self.lock.owner,
            last_turn=self.last_turn,
            report=self.report,
            report_error=self.report_error,
        )


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: str
    phase: SessionPhase
    transcript: Tuple[Utterance, ...]
    lock_held: bool
    lock_owner: Optional[str]
    last_turn: Optional[TurnResult]
    report: Optional[Report]
    report_error: Optional[str]

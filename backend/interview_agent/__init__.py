from interview_agent.orchestrator import TurnOrchestrator
from interview_agent.session_controller import SessionController
from interview_agent.transcript import Speaker, TranscriptStore, Utterance
from interview_agent.turn import TurnLock

__all__ = [
    "SessionController",
    "Speaker",
    "TranscriptStore",
    "TurnLock",
    "TurnOrchestrator",
    "Utterance",
]

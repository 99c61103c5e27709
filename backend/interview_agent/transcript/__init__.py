from interview_agent.transcript.models import Speaker, Utterance
from interview_agent.transcript.store import TranscriptStore

__all__ = ["Speaker", "TranscriptStore", "Utterance"]

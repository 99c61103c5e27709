class InterviewAgentError(Exception):
    """Base class for every error raised by the interview agent."""


class LockContention(InterviewAgentError):
    """A turn is already active. Ignored, never shown to the user."""


class CaptureFailure(InterviewAgentError):
    """Nothing was recognized or the recognizer failed. The user may retry."""


class InferenceFailure(InterviewAgentError):
    """The model call for the next interviewer line failed."""


class SynthesisFailure(InterviewAgentError):
    """Speech generation or playback failed. The agent text stays recorded."""


class TurnTimeout(InterviewAgentError):
    """The turn watchdog fired before the turn finished."""


class ScoringFailure(InterviewAgentError):
    """Report generation failed. Scoring alone may be retried."""


class TranscriptSealedError(InterviewAgentError):
    """An append was attempted after the session ended."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Protocol, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from interview_agent.schemas import Report
    from interview_agent.transcript.models import Utterance


@dataclass(frozen=True)
class InterviewContext:
    resume_text: str = ""
    job_description: str = ""


class PlaybackEventKind(str, Enum):
    STARTED = "started"
    ENDED = "ended"
    ERROR = "error"


@dataclass(frozen=True)
class PlaybackEvent:
    kind: PlaybackEventKind
    detail: str | None = None

    @classmethod
    def started(cls) -> "PlaybackEvent":
        return cls(PlaybackEventKind.STARTED)

    @classmethod
    def ended(cls) -> "PlaybackEvent":
        return cls(PlaybackEventKind.ENDED)

    @classmethod
    def error(cls, detail: str) -> "PlaybackEvent":
        return cls(PlaybackEventKind.ERROR, detail)


class SpeechCaptureAdapter(Protocol):
    async def capture(self) -> str:
        """One-shot recognition. Raises CaptureFailure."""
        ...


class InferenceAdapter(Protocol):
    async def infer(self, transcript: Sequence["Utterance"], context: InterviewContext) -> str:
        """Next interviewer line for the full transcript. Raises InferenceFailure."""
        ...


class SpeechOutputAdapter(Protocol):
    def synthesize_and_play(self, text: str) -> AsyncIterator[PlaybackEvent]:
        """Lazy, finite, non-restartable stream of playback events."""
        ...

    async def halt(self) -> None:
        ...


class ReportGenerator(Protocol):
    async def score(self, transcript: Sequence["Utterance"]) -> "Report":
        """Pure function of the transcript. Raises ScoringFailure."""
        ...

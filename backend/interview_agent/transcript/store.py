from threading import Lock
from typing import Optional, Tuple

from interview_agent.errors import TranscriptSealedError
from .models import Speaker, Utterance


class TranscriptStore:
    """
    Append-only transcript for ONE interview session.
    The conversation's source of truth; nothing here rewrites history.
    """

    def __init__(self):
        self._lock = Lock()
        self._utterances: list[Utterance] = []
        self._next_sequence: int = 0
        self._sealed: bool = False

    # -------------------------
    # WRITE
    # -------------------------

    def append(self, speaker: Speaker, text: str) -> Utterance:
        """
        Commit a line with the next sequence number.
        Callers already hold the turn lock; the inner lock guards misuse.
        """
        with self._lock:
            if self._sealed:
                raise TranscriptSealedError("transcript is sealed")

            utterance = Utterance(
                speaker=Speaker(speaker),
                text=str(text or "").strip(),
                sequence=self._next_sequence,
            )
            self._utterances.append(utterance)
            self._next_sequence += 1
            return utterance

    def seal(self) -> None:
        with self._lock:
            self._sealed = True

    # -------------------------
    # READ
    # -------------------------

    @property
    def sealed(self) -> bool:
        with self._lock:
            return self._sealed

    def snapshot(self) -> Tuple[Utterance, ...]:
        with self._lock:
            return tuple(self._utterances)

    def last(self) -> Optional[Utterance]:
        with self._lock:
            return self._utterances[-1] if self._utterances else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._utterances)

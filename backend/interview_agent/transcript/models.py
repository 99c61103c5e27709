from dataclasses import dataclass, field
from enum import Enum
import time


class Speaker(str, Enum):
    USER = "user"
    AGENT = "agent"

    @property
    def chat_role(self) -> str:
        return "user" if self is Speaker.USER else "assistant"


@dataclass(frozen=True)
class Utterance:
    """
    One committed line of the interview.
    Immutable once created; `sequence` is unique within a session.
    """
    speaker: Speaker
    text: str
    sequence: int
    created_ts: float = field(default_factory=time.time, compare=False)

    def as_message(self) -> dict:
        return {"role": self.speaker.chat_role, "content": self.text}

    def as_dict(self) -> dict:
        return {
            "speaker": self.speaker.value,
            "text": self.text,
            "sequence": self.sequence,
        }

import asyncio
import logging
from typing import Awaitable, Callable

import openai
from openai import AsyncOpenAI

from core.config import LLM_TIMEOUT_SEC, OPENAI_API_KEY, TRANSCRIBE_MODEL
from interview_agent.errors import CaptureFailure

logger = logging.getLogger("interview_agent.services.transcription_service")

client = AsyncOpenAI(api_key=OPENAI_API_KEY)

# returns one recorded utterance as WAV bytes, raises CaptureFailure on device errors
AudioSource = Callable[[], Awaitable[bytes]]


async def record_once(audio_source: AudioSource) -> bytes:
    audio = await audio_source()
    if not audio:
        raise CaptureFailure("no audio captured")
    return audio


class OpenAITranscriptionCapture:
    """
    One-shot speech recognition: record, then transcribe the whole clip.
    No partial results.
    """

    def __init__(
        self,
        audio_source: AudioSource,
        api_client: AsyncOpenAI | None = None,
        model: str = TRANSCRIBE_MODEL,
        language: str = "en",
        timeout_sec: float = LLM_TIMEOUT_SEC,
    ):
        self.audio_source = audio_source
        self.client = api_client or client
        self.model = model
        self.language = language
        self.timeout_sec = timeout_sec

    async def capture(self) -> str:
        audio = await record_once(self.audio_source)

        try:
            transcript = await asyncio.wait_for(
                self.client.audio.transcriptions.create(
                    model=self.model,
                    file=("speech.wav", audio, "audio/wav"),
                    language=self.language,
                ),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("transcription timeout | after=%ss", self.timeout_sec)
            raise CaptureFailure("speech recognition timed out") from exc
        except openai.OpenAIError as exc:
            logger.warning("transcription failure | err=%s", exc)
            raise CaptureFailure(f"speech recognition failed: {exc}") from exc

        text = str(getattr(transcript, "text", "") or "").strip()
        if not text:
            raise CaptureFailure("no speech recognized")
        return text

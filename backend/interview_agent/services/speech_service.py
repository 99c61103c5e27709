import asyncio
import logging
from typing import AsyncIterator, Protocol

import openai
from openai import AsyncOpenAI

from core.config import LLM_TIMEOUT_SEC, OPENAI_API_KEY, TTS_MODEL, TTS_VOICE
from interview_agent.adapters import PlaybackEvent
from interview_agent.errors import SynthesisFailure

logger = logging.getLogger("interview_agent.services.speech_service")

client = AsyncOpenAI(api_key=OPENAI_API_KEY)

# OpenAI "pcm" output: 24kHz, 16-bit signed, mono, little-endian
PCM_SAMPLE_RATE = 24000


class AudioSink(Protocol):
    async def play(self, pcm: bytes) -> None:
        """Returns once playback finished or was stopped. Raises SynthesisFailure."""
        ...

    async def stop(self) -> None:
        ...


class OpenAISpeechOutput:
    """
    Text → speech with the OpenAI TTS endpoint, played through an AudioSink.

    Audio only starts after the consumer has taken the STARTED event, so a
    consumer that drops the stream at that point never makes a sound.
    """

    def __init__(
        self,
        sink: AudioSink,
        api_client: AsyncOpenAI | None = None,
        model: str = TTS_MODEL,
        voice: str = TTS_VOICE,
        timeout_sec: float = LLM_TIMEOUT_SEC,
    ):
        self.sink = sink
        self.client = api_client or client
        self.model = model
        self.voice = voice
        self.timeout_sec = timeout_sec

    async def synthesize(self, text: str) -> bytes:
        try:
            response = await asyncio.wait_for(
                self.client.audio.speech.create(
                    model=self.model,
                    voice=self.voice,
                    input=text,
                    response_format="pcm",
                ),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("tts timeout | after=%ss", self.timeout_sec)
            raise SynthesisFailure("speech synthesis timed out") from exc
        except openai.OpenAIError as exc:
            logger.warning("tts failure | err=%s", exc)
            raise SynthesisFailure(f"speech synthesis failed: {exc}") from exc

        audio = response.content
        if not audio:
            raise SynthesisFailure("speech synthesis returned no audio")
        return audio

    async def synthesize_and_play(self, text: str) -> AsyncIterator[PlaybackEvent]:
        try:
            audio = await self.synthesize(text)
        except SynthesisFailure as exc:
            yield PlaybackEvent.error(str(exc))
            return

        yield PlaybackEvent.started()

        try:
            await self.sink.play(audio)
        except SynthesisFailure as exc:
            yield PlaybackEvent.error(str(exc))
            return
        except asyncio.CancelledError:
            await self.sink.stop()
            raise

        yield PlaybackEvent.ended()

    async def halt(self) -> None:
        await self.sink.stop()

import asyncio
import io
import logging
import threading
import wave

import numpy as np
import sounddevice as sd

from core.config import CAPTURE_MAX_SEC
from interview_agent.errors import CaptureFailure, SynthesisFailure
from interview_agent.services.speech_service import PCM_SAMPLE_RATE

logger = logging.getLogger("interview_agent.audio.devices")


class MicrophoneSource:
    """
    Push-to-talk recorder. Records until `stop()` or `max_seconds`,
    returns the clip as 16-bit mono WAV.
    """

    def __init__(self, max_seconds: float = CAPTURE_MAX_SEC, sample_rate: int = 16000):
        self.max_seconds = max_seconds
        self.sample_rate = sample_rate
        self._stop = threading.Event()

    def stop(self) -> None:
        self._stop.set()

    def _record(self) -> bytes:
        self._stop.clear()
        chunks: list[np.ndarray] = []

        def _callback(indata, frames, time_info, status):
            if status:
                logger.debug("input status | %s", status)
            chunks.append(indata.copy())

        with sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="int16",
            callback=_callback,
            blocksize=1024,
        ):
            self._stop.wait(timeout=self.max_seconds)

        if not chunks:
            return b""

        audio = np.concatenate(chunks, axis=0)
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav_file:
            wav_file.setnchannels(1)
            wav_file.setsampwidth(2)
            wav_file.setframerate(self.sample_rate)
            wav_file.writeframes(audio.tobytes())
        return buffer.getvalue()

    async def __call__(self) -> bytes:
        try:
            return await asyncio.to_thread(self._record)
        except sd.PortAudioError as exc:
            raise CaptureFailure(f"microphone unavailable: {exc}") from exc


class SpeakerSink:
    """Plays raw TTS PCM on the default output device."""

    def __init__(self, sample_rate: int = PCM_SAMPLE_RATE):
        self.sample_rate = sample_rate

    async def play(self, pcm: bytes) -> None:
        usable = len(pcm) - (len(pcm) % 2)
        samples = np.frombuffer(pcm[:usable], dtype=np.int16)
        try:
            sd.play(samples, self.sample_rate)
            await asyncio.to_thread(sd.wait)
        except sd.PortAudioError as exc:
            raise SynthesisFailure(f"playback failed: {exc}") from exc

    async def stop(self) -> None:
        sd.stop()

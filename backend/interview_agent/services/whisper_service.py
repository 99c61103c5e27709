import asyncio
import os
import tempfile

from interview_agent.errors import CaptureFailure
from interview_agent.services.transcription_service import AudioSource, record_once


class WhisperCapture:
    """Local recognition with openai-whisper. Slower, but works offline."""

    def __init__(self, audio_source: AudioSource, model=None, model_name: str = "base"):
        self.audio_source = audio_source
        if model is None:
            try:
                import whisper  # type: ignore
            except ImportError as exc:
                raise RuntimeError(
                    "Whisper is not installed. Install the optional dependency 'openai-whisper' (and FFmpeg) to enable local transcription."
                ) from exc

            model = whisper.load_model(model_name)
        self.model = model

    def transcribe(self, wav_bytes: bytes) -> str:
        with tempfile.NamedTemporaryFile(delete=False, suffix=".wav") as f:
            f.write(wav_bytes)
            path = f.name

        try:
            result = self.model.transcribe(path)
        finally:
            os.unlink(path)
        return str(result.get("text") or "").strip()

    async def capture(self) -> str:
        audio = await record_once(self.audio_source)
        try:
            text = await asyncio.to_thread(self.transcribe, audio)
        except RuntimeError as exc:
            raise CaptureFailure(f"local recognition failed: {exc}") from exc
        if not text:
            raise CaptureFailure("no speech recognized")
        return text

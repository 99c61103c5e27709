from types import SimpleNamespace

import openai
import pytest

from interview_agent.adapters import InterviewContext, PlaybackEventKind
from interview_agent.errors import CaptureFailure, InferenceFailure, ScoringFailure, SynthesisFailure
from interview_agent.interview import evaluator
from interview_agent.interview.prompts import FALLBACK_QUESTION, KICKOFF_LINE
from interview_agent.services import openai_service
from interview_agent.services.speech_service import OpenAISpeechOutput
from interview_agent.services.transcription_service import OpenAITranscriptionCapture
from interview_agent.services.whisper_service import WhisperCapture
from interview_agent.transcript import Speaker, TranscriptStore


def _chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _transcript(*lines):
    store = TranscriptStore()
    for speaker, text in lines:
        store.append(speaker, text)
    return store.snapshot()


# -------------------------
# INFERENCE
# -------------------------

def test_build_messages_adds_kickoff_for_opening_turn():
    messages = openai_service.build_messages((), InterviewContext("x" * 5000, "Senior Go Engineer"))

    assert messages[0]["role"] == "system"
    assert "Senior Go Engineer" in messages[0]["content"]
    assert "x" * 2001 not in messages[0]["content"]
    assert messages[-1] == {"role": "user", "content": KICKOFF_LINE}


def test_build_messages_replays_full_transcript():
    transcript = _transcript((Speaker.AGENT, "Q1"), (Speaker.USER, "A1"))

    messages = openai_service.build_messages(transcript, InterviewContext())

    assert messages[1:] == [
        {"role": "assistant", "content": "Q1"},
        {"role": "user", "content": "A1"},
    ]


@pytest.mark.asyncio
async def test_infer_success_with_mock(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    async def _fake_create(*args, **kwargs):
        seen.update(kwargs)
        return _chat_response("  Why Go?  ")

    monkeypatch.setattr(openai_service.client.chat.completions, "create", _fake_create)

    reply = await openai_service.OpenAIInference().infer((), InterviewContext())
    assert reply == "Why Go?"
    assert seen["messages"][-1] == {"role": "user", "content": KICKOFF_LINE}


@pytest.mark.asyncio
async def test_infer_empty_reply_uses_fallback_question(monkeypatch: pytest.MonkeyPatch):
    async def _fake_create(*args, **kwargs):
        return _chat_response(None)

    monkeypatch.setattr(openai_service.client.chat.completions, "create", _fake_create)

    assert await openai_service.OpenAIInference().infer((), InterviewContext()) == FALLBACK_QUESTION


@pytest.mark.asyncio
async def test_infer_raises_after_retries(monkeypatch: pytest.MonkeyPatch):
    attempts = []

    async def _boom(*args, **kwargs):
        attempts.append(1)
        raise openai.OpenAIError("forced")

    monkeypatch.setattr(openai_service.client.chat.completions, "create", _boom)

    with pytest.raises(InferenceFailure):
        await openai_service.OpenAIInference(retries=1, timeout_sec=0.1).infer((), InterviewContext())
    assert len(attempts) == 2


# -------------------------
# REPORT
# -------------------------

def test_parse_report_handles_fenced_json_and_clamps_score():
    raw = 'Here you go:\n```json\n{"score": 14, "feedback": "Good.", "improvements": ["a", "", "b"]}\n```'

    report = evaluator.parse_report(raw)

    assert report.score == 10
    assert report.feedback == "Good."
    assert report.improvements == ["a", "b"]


@pytest.mark.parametrize("raw", ["", "not json", '{"score": 5}'])
def test_parse_report_rejects_unusable_output(raw):
    with pytest.raises(ScoringFailure):
        evaluator.parse_report(raw)


@pytest.mark.asyncio
async def test_score_requests_json_object(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    async def _fake_create(*args, **kwargs):
        seen.update(kwargs)
        return _chat_response('{"score": 6, "feedback": "Fine.", "improvements": ["x", "y", "z"]}')

    monkeypatch.setattr(evaluator.client.chat.completions, "create", _fake_create)
    transcript = _transcript((Speaker.AGENT, "Q1"), (Speaker.USER, "A1"))

    report = await evaluator.OpenAIReportGenerator().score(transcript)

    assert report.score == 6
    assert seen["response_format"] == {"type": "json_object"}
    assert '"role": "You"' in seen["messages"][1]["content"]
    assert '"role": "AI Coach"' in seen["messages"][1]["content"]


@pytest.mark.asyncio
async def test_score_rejects_empty_transcript():
    with pytest.raises(ScoringFailure, match="No conversation"):
        await evaluator.OpenAIReportGenerator().score(())


@pytest.mark.asyncio
async def test_score_wraps_provider_errors(monkeypatch: pytest.MonkeyPatch):
    async def _boom(*args, **kwargs):
        raise openai.OpenAIError("forced")

    monkeypatch.setattr(evaluator.client.chat.completions, "create", _boom)

    with pytest.raises(ScoringFailure):
        await evaluator.OpenAIReportGenerator().score(_transcript((Speaker.AGENT, "Q1")))


@pytest.mark.asyncio
async def test_score_rejects_response_without_choices(monkeypatch: pytest.MonkeyPatch):
    async def _empty(*args, **kwargs):
        return SimpleNamespace(choices=[])

    monkeypatch.setattr(evaluator.client.chat.completions, "create", _empty)

    with pytest.raises(ScoringFailure, match="no choices"):
        await evaluator.OpenAIReportGenerator().score(_transcript((Speaker.AGENT, "Q1")))


def test_report_client_is_built_with_credentials():
    assert evaluator.client.api_key


# -------------------------
# SPEECH CAPTURE
# -------------------------

def _stt_client(text=None, error=None):
    async def _create(**kwargs):
        if error is not None:
            raise error
        return SimpleNamespace(text=text)

    return SimpleNamespace(audio=SimpleNamespace(transcriptions=SimpleNamespace(create=_create)))


async def _wav():
    return b"RIFF....WAVE"


async def _silence():
    return b""


@pytest.mark.asyncio
async def test_transcription_capture_returns_text():
    capture = OpenAITranscriptionCapture(_wav, api_client=_stt_client(" I led the migration. "))
    assert await capture.capture() == "I led the migration."


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "source,client",
    [
        (_silence, _stt_client("unused")),
        (_wav, _stt_client("   ")),
        (_wav, _stt_client(error=openai.OpenAIError("down"))),
    ],
)
async def test_transcription_capture_failures(source, client):
    with pytest.raises(CaptureFailure):
        await OpenAITranscriptionCapture(source, api_client=client).capture()


@pytest.mark.asyncio
async def test_whisper_capture_uses_local_model():
    class _Model:
        def transcribe(self, path):
            with open(path, "rb") as f:
                assert f.read() == b"RIFF....WAVE"
            return {"text": " Hello there "}

    assert await WhisperCapture(_wav, model=_Model()).capture() == "Hello there"


# -------------------------
# SPEECH OUTPUT
# -------------------------

class _Sink:
    def __init__(self, error=None):
        self.error = error
        self.played = []
        self.stops = 0

    async def play(self, pcm):
        if self.error:
            raise SynthesisFailure(self.error)
        self.played.append(pcm)

    async def stop(self):
        self.stops += 1


def _tts_client(content=b"\x00\x01" * 10, error=None):
    async def _create(**kwargs):
        if error is not None:
            raise error
        assert kwargs["response_format"] == "pcm"
        return SimpleNamespace(content=content)

    return SimpleNamespace(audio=SimpleNamespace(speech=SimpleNamespace(create=_create)))


@pytest.mark.asyncio
async def test_speech_output_emits_started_then_ended():
    sink = _Sink()
    output = OpenAISpeechOutput(sink, api_client=_tts_client())

    events = [event.kind async for event in output.synthesize_and_play("Hello")]

    assert events == [PlaybackEventKind.STARTED, PlaybackEventKind.ENDED]
    assert sink.played == [b"\x00\x01" * 10]


@pytest.mark.asyncio
async def test_speech_output_does_not_play_if_consumer_leaves_at_start():
    sink = _Sink()
    stream = OpenAISpeechOutput(sink, api_client=_tts_client()).synthesize_and_play("Hello")

    first = await stream.__anext__()
    await stream.aclose()

    assert first.kind is PlaybackEventKind.STARTED
    assert sink.played == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "sink,client",
    [
        (_Sink(), _tts_client(error=openai.OpenAIError("tts down"))),
        (_Sink(), _tts_client(content=b"")),
        (_Sink(error="device busy"), _tts_client()),
    ],
)
async def test_speech_output_reports_errors_as_events(sink, client):
    events = [event async for event in OpenAISpeechOutput(sink, api_client=client).synthesize_and_play("Hi")]

    assert events[-1].kind is PlaybackEventKind.ERROR
    assert events[-1].detail


@pytest.mark.asyncio
async def test_speech_output_halt_stops_sink():
    sink = _Sink()
    await OpenAISpeechOutput(sink, api_client=_tts_client()).halt()
    assert sink.stops == 1

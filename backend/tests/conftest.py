import asyncio
import os
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# the service modules build their OpenAI clients at import time
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from interview_agent.adapters import PlaybackEvent  # noqa: E402
from interview_agent.schemas import Report  # noqa: E402
from interview_agent.system_metrics import reset_metrics  # noqa: E402


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    reset_metrics()


class FakeCapture:
    """Returns scripted results in order; an Exception in the script is raised."""

    def __init__(self, *results, gate: asyncio.Event | None = None):
        self.results = list(results) or ["I worked on a payments system"]
        self.gate = gate
        self.calls = 0

    async def capture(self) -> str:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeInference:
    def __init__(self, *results, gate: asyncio.Event | None = None):
        self.results = list(results) or ["Can you describe the scaling challenges?"]
        self.gate = gate
        self.calls = []

    async def infer(self, transcript, context) -> str:
        self.calls.append((tuple(transcript), context))
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSpeechOutput:
    """
    Emits STARTED, "plays", then ENDED. With `hold`, playback lasts until the
    event is set or `halt()` is called.
    """

    def __init__(self, error: str | None = None, hold: asyncio.Event | None = None):
        self.error = error
        self.hold = hold
        self.requested: list[str] = []
        self.played: list[str] = []
        self.halts = 0

    async def synthesize_and_play(self, text: str):
        self.requested.append(text)
        await asyncio.sleep(0)
        if self.error:
            yield PlaybackEvent.error(self.error)
            return
        yield PlaybackEvent.started()
        self.played.append(text)
        if self.hold is not None:
            await self.hold.wait()
        yield PlaybackEvent.ended()

    async def halt(self) -> None:
        self.halts += 1
        if self.hold is not None:
            self.hold.set()


class FakeReportGenerator:
    def __init__(self, *results):
        self.results = list(results) or [
            Report(score=7, feedback="Solid answers.", improvements=["Quantify impact"])
        ]
        self.calls = []

    async def score(self, transcript):
        self.calls.append(tuple(transcript))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


async def wait_until(predicate, timeout: float = 1.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def fakes():
    class _Fakes:
        Capture = FakeCapture
        Inference = FakeInference
        SpeechOutput = FakeSpeechOutput
        ReportGenerator = FakeReportGenerator

    return _Fakes


@pytest.fixture
def until():
    return wait_until

import argparse
import asyncio
from pathlib import Path

from core.config import CAPTURE_MAX_SEC, QA_MODE, TURN_TIMEOUT_SEC
from core.logger import configure_logging
from interview_agent.errors import ScoringFailure
from interview_agent.orchestrator import TurnOrchestrator
from interview_agent.schemas import Report
from interview_agent.session_controller import SessionController
from interview_agent.transcript import Speaker
from interview_agent.turn_lifecycle import TurnResult


def _read_text(path: str | None) -> str:
    if not path:
        return ""
    return Path(path).read_text(encoding="utf-8").strip()


def build_controller(stt: str = "openai", turn_timeout_sec: float = TURN_TIMEOUT_SEC):
    from interview_agent.audio.devices import MicrophoneSource, SpeakerSink
    from interview_agent.interview.evaluator import OpenAIReportGenerator
    from interview_agent.services.openai_service import OpenAIInference
    from interview_agent.services.speech_service import OpenAISpeechOutput

    microphone = MicrophoneSource()
    if stt == "local":
        from interview_agent.services.whisper_service import WhisperCapture
        capture = WhisperCapture(microphone)
    else:
        from interview_agent.services.transcription_service import OpenAITranscriptionCapture
        capture = OpenAITranscriptionCapture(microphone)

    orchestrator = TurnOrchestrator(
        capture=capture,
        inference=OpenAIInference(),
        speech_output=OpenAISpeechOutput(SpeakerSink()),
        turn_timeout_sec=turn_timeout_sec,
    )
    return SessionController(orchestrator, OpenAIReportGenerator()), microphone


class TranscriptPrinter:
    def __init__(self, controller: SessionController):
        self.controller = controller
        self.printed = 0

    def flush(self) -> None:
        snapshot = self.controller.observe()
        if snapshot is None:
            return
        for utterance in snapshot.transcript[self.printed:]:
            label = "You" if utterance.speaker is Speaker.USER else "Interviewer"
            print(f"{label}: {utterance.text}")
        self.printed = len(snapshot.transcript)


def _print_result(result: TurnResult) -> None:
    if result.surfaced:
        error = result.as_error()
        print(f"({type(error).__name__}: {error})")


def _print_report(report: Report) -> None:
    print("\n==== Interview report ====")
    print(f"Score: {report.score}/10")
    print(report.feedback)
    for item in report.improvements:
        print(f"  - {item}")


async def _prompt(text: str) -> str:
    return (await asyncio.to_thread(input, text)).strip().lower()


async def run(args: argparse.Namespace) -> int:
    controller, microphone = build_controller(stt=args.stt, turn_timeout_sec=args.turn_timeout)
    printer = TranscriptPrinter(controller)

    try:
        print("Starting interview...")
        _print_result(await controller.start_session(_read_text(args.resume), _read_text(args.job_description)))
        printer.flush()

        while True:
            command = await _prompt("[Enter] answer  [q] end interview > ")
            if command == "q":
                break

            turn = controller.create_task(controller.request_turn())
            await _prompt("Recording... press Enter when you are done ")
            microphone.stop()
            _print_result(await turn)
            printer.flush()

        print("Analyzing your interview...")
        try:
            report = await controller.end_session()
        except ScoringFailure as exc:
            report = None
            print(f"Analysis failed: {exc}")
            while report is None:
                if await _prompt("[r] retry analysis  [q] quit > ") != "r":
                    return 1
                try:
                    report = await controller.retry_report()
                except ScoringFailure as retry_exc:
                    print(f"Analysis failed: {retry_exc}")

        _print_report(report)
        return 0
    finally:
        await controller.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mock-interview", description="Voice mock interview in the terminal.")
    parser.add_argument("--resume", help="path to a plain-text resume")
    parser.add_argument("--job-description", help="path to a plain-text job description")
    parser.add_argument("--stt", choices=["openai", "local"], default="openai")
    # the watchdog covers the whole turn, recording window included
    parser.add_argument("--turn-timeout", type=float, default=TURN_TIMEOUT_SEC + CAPTURE_MAX_SEC)
    parser.add_argument("--debug", action="store_true", default=QA_MODE)
    args = parser.parse_args(argv)

    configure_logging(debug=args.debug)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130

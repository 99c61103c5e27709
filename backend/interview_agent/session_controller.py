import asyncio
import logging
from typing import Optional

from core.logger import log_event
from core.state import SessionPhase
from interview_agent.adapters import InterviewContext, ReportGenerator
from interview_agent.errors import ScoringFailure
from interview_agent.orchestrator import TurnOrchestrator
from interview_agent.schemas import Report
from interview_agent.session.state import SessionSnapshot, SessionState
from interview_agent.system_metrics import increment_metric
from interview_agent.turn_lifecycle import TurnOutcome, TurnResult

logger = logging.getLogger("session_controller")

HALT_TIMEOUT_SEC = 2.0


class SessionController:
    def __init__(self, orchestrator: TurnOrchestrator, report_generator: ReportGenerator):
        self.orchestrator = orchestrator
        self.report_generator = report_generator
        self.session: Optional[SessionState] = None
        self.tasks: set[asyncio.Task] = set()
        self._report_lock = asyncio.Lock()

    def observe(self) -> Optional[SessionSnapshot]:
        session = self.session
        return session.snapshot() if session is not None else None

    def create_task(self, coro):
        task = asyncio.create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def start_session(self, resume_text: str, job_description: str) -> TurnResult:
        previous = self.session
        if previous is not None and not previous.is_ended:
            await self._teardown(previous, reason="replaced")

        session = SessionState(
            context=InterviewContext(
                resume_text=str(resume_text or ""),
                job_description=str(job_description or ""),
            )
        )
        self.session = session
        increment_metric("sessions_started")
        log_event(
            "session",
            "session_started",
            session.session_id,
            resume_text=session.context.resume_text,
            job_description=session.context.job_description,
        )

        return await self.orchestrator.run_turn(session, opening=True)

    async def request_turn(self) -> TurnResult:
        session = self.session
        if session is None:
            return TurnResult(turn_id=None, outcome=TurnOutcome.NO_SESSION)
        if session.is_ended:
            return TurnResult(turn_id=None, outcome=TurnOutcome.SESSION_ENDED)

        self.orchestrator.reap_expired(session)
        if session.phase is not SessionPhase.IDLE:
            logger.info(f"Turn request ignored | session={session.session_id} phase={session.phase.value}")
            return TurnResult(turn_id=None, outcome=TurnOutcome.ALREADY_IN_PROGRESS)

        return await self.orchestrator.run_turn(session)

    async def end_session(self) -> Report:
        """
        Escape hatch: never waits on the turn lock. A stuck turn is evicted,
        audio is halted, then the transcript as of this moment is scored.
        ScoringFailure propagates; call `retry_report` to try again.
        """
        session = self.session
        if session is None:
            raise ScoringFailure("No conversation to analyze")

        if not session.is_ended:
            await self._teardown(session, reason="user")

        return await self.retry_report()

    async def retry_report(self) -> Report:
        session = self.session
        if session is None or not session.is_ended:
            raise ScoringFailure("interview has not ended")

        async with self._report_lock:
            if session.report is not None:
                return session.report

            try:
                report = await self.report_generator.score(session.final_transcript or ())
            except ScoringFailure as exc:
                session.report_error = str(exc)
                increment_metric("reports_failed")
                log_event("session", "report_failed", session.session_id, error=str(exc))
                raise
            except Exception as exc:
                logger.exception(f"Report generation crashed | session={session.session_id}")
                session.report_error = str(exc) or type(exc).__name__
                increment_metric("reports_failed")
                log_event("session", "report_failed", session.session_id, error=session.report_error)
                raise ScoringFailure(session.report_error) from exc

            session.report = report
            session.report_error = None
            increment_metric("reports_generated")
            log_event("session", "report_generated", session.session_id, score=report.score)
            return report

    async def _teardown(self, session: SessionState, reason: str) -> None:
        # state changes first, with no await in between, so no turn can interleave
        evicted = session.lock.force_release()
        session.phase = SessionPhase.ENDED
        session.final_transcript = session.transcript.snapshot()
        session.transcript.seal()
        session.ended.set()

        increment_metric("sessions_ended")
        log_event(
            "session",
            "session_ended",
            session.session_id,
            reason=reason,
            evicted_turn=evicted,
            utterances=len(session.final_transcript),
        )

        try:
            await asyncio.wait_for(self.orchestrator.speech_output.halt(), timeout=HALT_TIMEOUT_SEC)
        except asyncio.TimeoutError:
            logger.warning(f"Playback halt timed out | session={session.session_id}")
        except Exception as exc:
            logger.warning(f"Playback halt failed | session={session.session_id} err={exc}")

    async def stop(self):
        pending = list(self.tasks)
        for task in pending:
            task.cancel()

        await asyncio.gather(*pending, return_exceptions=True)
        await self.orchestrator.shutdown()

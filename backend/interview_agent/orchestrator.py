from __future__ import annotations

import asyncio
import logging

from core.config import TURN_TIMEOUT_SEC
from core.logger import log_event
from core.state import SessionPhase
from interview_agent.adapters import (
    InferenceAdapter,
    PlaybackEventKind,
    SpeechCaptureAdapter,
    SpeechOutputAdapter,
)
from interview_agent.errors import (
    CaptureFailure,
    InferenceFailure,
    SynthesisFailure,
    TranscriptSealedError,
)
from interview_agent.session.state import SessionState
from interview_agent.system_metrics import increment_metric, observe_turn_latency_ms
from interview_agent.transcript import Speaker, Utterance
from interview_agent.turn_lifecycle import TurnLifecycle, TurnOutcome, TurnResult

logger = logging.getLogger("turn.orchestrator")

_STAGE_FAILURES = {
    SessionPhase.AWAITING_CAPTURE: TurnOutcome.CAPTURE_FAILED,
    SessionPhase.INFERRING: TurnOutcome.INFERENCE_FAILED,
    SessionPhase.SYNTHESIZING: TurnOutcome.SYNTHESIS_FAILED,
    SessionPhase.SPEAKING: TurnOutcome.SYNTHESIS_FAILED,
}


class TurnOrchestrator:
    """
    Drives one turn (capture → infer → synthesize/play) while holding the
    session's TurnLock.

    External calls are never cancelled. When the watchdog fires or the session
    ends, the turn's work keeps running in the background and every result it
    produces afterwards is dropped, because its turn id no longer owns the lock.
    """

    def __init__(
        self,
        capture: SpeechCaptureAdapter,
        inference: InferenceAdapter,
        speech_output: SpeechOutputAdapter,
        turn_timeout_sec: float = TURN_TIMEOUT_SEC,
    ):
        if float(turn_timeout_sec) <= 0:
            raise ValueError("turn_timeout_sec must be positive")
        self.capture = capture
        self.inference = inference
        self.speech_output = speech_output
        self.turn_timeout_sec = float(turn_timeout_sec)
        self._abandoned: set[asyncio.Task] = set()

    @property
    def abandoned_turns(self) -> int:
        return len(self._abandoned)

    async def run_turn(self, session: SessionState, opening: bool = False) -> TurnResult:
        if session.is_ended:
            return TurnResult(turn_id=None, outcome=TurnOutcome.SESSION_ENDED)

        self.reap_expired(session)

        turn = TurnLifecycle(opening=opening)
        if not session.lock.try_acquire(turn.turn_id, self.turn_timeout_sec):
            increment_metric("turns_rejected")
            log_event(
                "orchestrator",
                "turn_rejected",
                session.session_id,
                turn_id=turn.turn_id,
                owner=session.lock.owner,
            )
            return TurnResult(turn_id=turn.turn_id, outcome=TurnOutcome.ALREADY_IN_PROGRESS)

        increment_metric("turns_started")
        log_event("orchestrator", "turn_started", session.session_id, turn_id=turn.turn_id, opening=opening)

        work = asyncio.create_task(self._drive(session, turn))
        ended_wait = asyncio.create_task(session.ended.wait())
        try:
            done, _ = await asyncio.wait(
                {work, ended_wait},
                timeout=self.turn_timeout_sec,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            # the caller went away; the turn still owns the lock and finishes on its own
            self._track(work)
            raise
        finally:
            ended_wait.cancel()

        if work in done:
            result = work.result()
        elif session.is_ended:
            self._track(work)
            result = turn.finish(TurnOutcome.ABANDONED, "session ended")
        else:
            result = await self._expire(session, turn, work)

        session.last_turn = result
        return result

    def reap_expired(self, session: SessionState) -> bool:
        """Clear a lock whose deadline passed without its watchdog firing."""
        if not session.lock.is_expired():
            return False

        evicted = session.lock.force_release()
        if not session.is_ended:
            session.phase = SessionPhase.IDLE
        increment_metric("turns_timed_out")
        log_event("orchestrator", "lock_reaped", session.session_id, evicted=evicted)
        return True

    async def shutdown(self) -> None:
        pending = list(self._abandoned)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._abandoned.clear()

    # -------------------------
    # WATCHDOG
    # -------------------------

    async def _expire(self, session: SessionState, turn: TurnLifecycle, work: asyncio.Task) -> TurnResult:
        self._track(work)
        stage = turn.stage

        if session.lock.owner == turn.turn_id:
            session.lock.force_release()
            if not session.is_ended:
                session.phase = SessionPhase.IDLE

        increment_metric("turns_timed_out")
        log_event(
            "orchestrator",
            "turn_timed_out",
            session.session_id,
            turn_id=turn.turn_id,
            stage=stage.value,
            timeout_sec=self.turn_timeout_sec,
        )

        if stage in (SessionPhase.SYNTHESIZING, SessionPhase.SPEAKING):
            await self._halt_playback(session)

        return turn.finish(
            TurnOutcome.TIMED_OUT,
            f"turn exceeded {self.turn_timeout_sec:.1f}s during {stage.value}",
        )

    def _track(self, task: asyncio.Task) -> None:
        if task.done():
            return
        self._abandoned.add(task)
        task.add_done_callback(self._abandoned.discard)

    async def _halt_playback(self, session: SessionState) -> None:
        try:
            await self.speech_output.halt()
        except Exception as exc:
            logger.warning("halt playback failed | session=%s err=%s", session.session_id, exc)

    # -------------------------
    # TURN BODY
    # -------------------------

    async def _drive(self, session: SessionState, turn: TurnLifecycle) -> TurnResult:
        try:
            if not turn.opening:
                if not self._enter(session, turn, SessionPhase.AWAITING_CAPTURE):
                    return self._discard(session, turn, "capture")
                try:
                    heard = str(await self.capture.capture() or "").strip()
                except CaptureFailure as exc:
                    return self._fail(session, turn, TurnOutcome.CAPTURE_FAILED, exc)
                if not heard:
                    return self._fail(
                        session, turn, TurnOutcome.CAPTURE_FAILED, CaptureFailure("no speech recognized")
                    )
                if self._append(session, turn, Speaker.USER, heard) is None:
                    return self._discard(session, turn, "capture")

            if not self._enter(session, turn, SessionPhase.INFERRING):
                return self._discard(session, turn, "inference")
            try:
                reply = str(
                    await self.inference.infer(session.transcript.snapshot(), session.context) or ""
                ).strip()
            except InferenceFailure as exc:
                return self._fail(session, turn, TurnOutcome.INFERENCE_FAILED, exc)
            if not reply:
                return self._fail(
                    session, turn, TurnOutcome.INFERENCE_FAILED, InferenceFailure("empty model reply")
                )

            agent_line = self._append(session, turn, Speaker.AGENT, reply)
            if agent_line is None:
                return self._discard(session, turn, "inference")

            if not self._enter(session, turn, SessionPhase.SYNTHESIZING):
                return self._discard(session, turn, "synthesis")
            try:
                still_owned = await self._speak(session, turn, agent_line.text)
            except SynthesisFailure as exc:
                return self._fail(session, turn, TurnOutcome.SYNTHESIS_FAILED, exc)
            if not still_owned:
                return self._discard(session, turn, "playback")

            return self._complete(session, turn)
        except Exception as exc:
            logger.exception("turn crashed | session=%s turn=%s", session.session_id, turn.turn_id)
            outcome = _STAGE_FAILURES.get(turn.stage, TurnOutcome.INFERENCE_FAILED)
            return self._fail(session, turn, outcome, exc)

    async def _speak(self, session: SessionState, turn: TurnLifecycle, text: str) -> bool:
        stream = self.speech_output.synthesize_and_play(text)
        try:
            async for event in stream:
                if not session.owned_by(turn.turn_id):
                    return False
                if event.kind is PlaybackEventKind.STARTED:
                    self._enter(session, turn, SessionPhase.SPEAKING)
                elif event.kind is PlaybackEventKind.ENDED:
                    return True
                elif event.kind is PlaybackEventKind.ERROR:
                    raise SynthesisFailure(event.detail or "playback error")
            # stream exhausted without an explicit end: playback is over
            return session.owned_by(turn.turn_id)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    # -------------------------
    # GUARDED MUTATIONS
    # -------------------------

    def _enter(self, session: SessionState, turn: TurnLifecycle, phase: SessionPhase) -> bool:
        if not session.owned_by(turn.turn_id):
            return False
        turn.advance(phase)
        session.phase = phase
        return True

    def _append(self, session: SessionState, turn: TurnLifecycle, speaker: Speaker, text: str) -> Utterance | None:
        if not session.owned_by(turn.turn_id):
            return None
        try:
            utterance = session.transcript.append(speaker, text)
        except TranscriptSealedError:
            return None
        log_event(
            "orchestrator",
            "utterance_appended",
            session.session_id,
            turn_id=turn.turn_id,
            speaker=speaker.value,
            sequence=utterance.sequence,
            text=utterance.text,
        )
        return utterance

    def _complete(self, session: SessionState, turn: TurnLifecycle) -> TurnResult:
        if not session.owned_by(turn.turn_id):
            return self._discard(session, turn, "completion")
        session.phase = SessionPhase.IDLE
        session.lock.release(turn.turn_id)
        result = turn.finish(TurnOutcome.COMPLETED)
        increment_metric("turns_completed")
        observe_turn_latency_ms(turn.latency * 1000.0)
        log_event("orchestrator", "turn_completed", session.session_id, turn_id=turn.turn_id)
        return result

    def _fail(self, session: SessionState, turn: TurnLifecycle, outcome: TurnOutcome, exc: Exception) -> TurnResult:
        if not session.owned_by(turn.turn_id):
            return self._discard(session, turn, outcome.value)
        session.phase = SessionPhase.IDLE
        session.lock.release(turn.turn_id)
        increment_metric("turns_failed")
        log_event(
            "orchestrator",
            "turn_failed",
            session.session_id,
            turn_id=turn.turn_id,
            outcome=outcome.value,
            error=str(exc),
        )
        return turn.finish(outcome, str(exc))

    def _discard(self, session: SessionState, turn: TurnLifecycle, stage: str) -> TurnResult:
        increment_metric("stale_results_discarded")
        log_event("orchestrator", "stale_result_discarded", session.session_id, turn_id=turn.turn_id, stage=stage)
        return turn.finish(TurnOutcome.ABANDONED, f"stale {stage} result discarded")

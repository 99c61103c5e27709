import asyncio
import json
import logging
import re
from typing import Sequence

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from core.config import LLM_TIMEOUT_SEC, OPENAI_API_KEY, REPORT_MODEL
from interview_agent.errors import ScoringFailure
from interview_agent.interview.prompts import REPORT_PROMPT
from interview_agent.schemas import Report, TranscriptLine
from interview_agent.transcript import Speaker, Utterance

logger = logging.getLogger("interview_agent.interview.evaluator")

client = AsyncOpenAI(api_key=OPENAI_API_KEY)

_ROLE_LABELS = {
    Speaker.USER: "You",
    Speaker.AGENT: "AI Coach",
}


def _clamp_score(value, default=1):
    try:
        return max(1, min(10, int(round(float(value)))))
    except (TypeError, ValueError):
        return default


def _normalize_report(data: dict) -> dict:
    improvements = data.get("improvements") or []
    if isinstance(improvements, str):
        improvements = [improvements]
    return {
        "score": _clamp_score(data.get("score")),
        "feedback": str(data.get("feedback") or "").strip(),
        "improvements": [str(item).strip() for item in improvements if str(item or "").strip()],
    }


def _extract_json_dict(text: str) -> dict | None:
    text = (text or "").strip()
    if not text:
        return None

    try:
        parsed = json.loads(text)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", text, re.IGNORECASE)
    if fenced:
        try:
            parsed = json.loads(fenced.group(1))
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            parsed = json.loads(text[start:end + 1])
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            return None

    return None


def serialize_transcript(transcript: Sequence[Utterance]) -> str:
    lines = [
        TranscriptLine(role=_ROLE_LABELS[item.speaker], text=item.text).model_dump()
        for item in transcript
    ]
    return json.dumps(lines, ensure_ascii=False)


def parse_report(raw_text: str) -> Report:
    parsed = _extract_json_dict(raw_text)
    if not isinstance(parsed, dict):
        raise ScoringFailure("report model returned no JSON object")

    normalized = _normalize_report(parsed)
    if not normalized["feedback"]:
        raise ScoringFailure("report is missing feedback")

    try:
        return Report(**normalized)
    except ValidationError as exc:
        raise ScoringFailure(f"report failed validation: {exc}") from exc


class OpenAIReportGenerator:
    """Scores a finished interview. Called once per session, at end."""

    def __init__(
        self,
        api_client: AsyncOpenAI | None = None,
        model: str = REPORT_MODEL,
        timeout_sec: float = LLM_TIMEOUT_SEC * 3,
    ):
        self.client = api_client or client
        self.model = model
        self.timeout_sec = timeout_sec

    async def score(self, transcript: Sequence[Utterance]) -> Report:
        if not transcript:
            raise ScoringFailure("No conversation to analyze")

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": REPORT_PROMPT},
                        {"role": "user", "content": serialize_transcript(transcript)},
                    ],
                    response_format={"type": "json_object"},
                ),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("report timeout | after=%ss", self.timeout_sec)
            raise ScoringFailure("report generation timed out") from exc
        except openai.OpenAIError as exc:
            logger.warning("report failure | err=%s", exc)
            raise ScoringFailure(f"report generation failed: {exc}") from exc

        if not response.choices:
            raise ScoringFailure("report model returned no choices")
        return parse_report(response.choices[0].message.content or "")

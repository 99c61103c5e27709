import asyncio
import logging
from typing import Sequence

import openai
from openai import AsyncOpenAI

from core.config import INTERVIEW_MODEL, LLM_TIMEOUT_SEC, OPENAI_API_KEY
from interview_agent.adapters import InterviewContext
from interview_agent.errors import InferenceFailure
from interview_agent.interview.prompts import (
    FALLBACK_QUESTION,
    KICKOFF_LINE,
    build_interviewer_prompt,
)
from interview_agent.transcript import Speaker, Utterance

logger = logging.getLogger("interview_agent.services.openai_service")

client = AsyncOpenAI(api_key=OPENAI_API_KEY)


def build_messages(transcript: Sequence[Utterance], context: InterviewContext) -> list[dict]:
    messages = [
        {
            "role": "system",
            "content": build_interviewer_prompt(context.resume_text, context.job_description),
        }
    ]
    messages.extend(item.as_message() for item in transcript)

    # the opening turn has no candidate line yet
    if not transcript or transcript[-1].speaker is not Speaker.USER:
        messages.append({"role": "user", "content": KICKOFF_LINE})
    return messages


class OpenAIInference:
    """Interviewer turns from the chat completions API. Stateless across calls."""

    def __init__(
        self,
        api_client: AsyncOpenAI | None = None,
        model: str = INTERVIEW_MODEL,
        timeout_sec: float = LLM_TIMEOUT_SEC,
        retries: int = 1,
    ):
        self.client = api_client or client
        self.model = model
        self.timeout_sec = timeout_sec
        self.retries = max(0, int(retries))

    async def infer(self, transcript: Sequence[Utterance], context: InterviewContext) -> str:
        messages = build_messages(transcript, context)

        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            try:
                response = await asyncio.wait_for(
                    self.client.chat.completions.create(
                        model=self.model,
                        messages=messages,
                    ),
                    timeout=self.timeout_sec,
                )
                message = response.choices[0].message.content
                return str(message or "").strip() or FALLBACK_QUESTION
            except asyncio.TimeoutError as exc:
                last_error = exc
                logger.warning("infer timeout | attempt=%s", attempt + 1)
            except openai.OpenAIError as exc:
                last_error = exc
                logger.warning("infer failure | attempt=%s err=%s", attempt + 1, exc)

            if attempt < self.retries:
                await asyncio.sleep(0.35 * (attempt + 1))

        raise InferenceFailure(f"interviewer model call failed: {last_error!r}") from last_error

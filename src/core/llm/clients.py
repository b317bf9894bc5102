"""Structured-output clients for document extraction.

Both SDK clients are created lazily and shared per process. Transport retries
are disabled; the pipeline owns timeouts and fallbacks.
"""

import instructor
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from src.core.config import settings

_anthropic: AsyncAnthropic | None = None
_openai: AsyncOpenAI | None = None


def anthropic_client() -> AsyncAnthropic:
    global _anthropic
    if _anthropic is None:
        _anthropic = AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.extraction_timeout_seconds,
            max_retries=0,
        )
    return _anthropic


def openai_client() -> AsyncOpenAI:
    global _openai
    if _openai is None:
        _openai = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.extraction_timeout_seconds,
            max_retries=0,
        )
    return _openai


def get_instructor_anthropic() -> instructor.AsyncInstructor:
    """Anthropic client returning pydantic extraction models via tool use."""
    return instructor.from_anthropic(anthropic_client(), mode=instructor.Mode.ANTHROPIC_TOOLS)


def get_instructor_openai() -> instructor.AsyncInstructor:
    """OpenAI client returning pydantic extraction models via tool calls."""
    return instructor.from_openai(openai_client(), mode=instructor.Mode.TOOLS)

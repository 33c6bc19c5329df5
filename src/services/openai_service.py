"""Utilities for generating text through the OpenAI Responses API."""
from typing import Optional

from openai import OpenAI
from starlette.concurrency import run_in_threadpool

from src.core.config import settings

_client: Optional[OpenAI] = None


def get_openai_client() -> OpenAI:
    """Create (or reuse) an OpenAI client configured with the project API key."""

    global _client

    if _client is None:
        if not settings.OPENAI_API_KEY:
            raise RuntimeError("OPENAI_API_KEY is not configured")
        _client = OpenAI(api_key=settings.OPENAI_API_KEY)
    return _client


def generate_text(
    prompt: str,
    instructions: Optional[str] = None,
    model: Optional[str] = None,
    max_output_tokens: int = 4000,
) -> str:
    client = get_openai_client()
    response = client.responses.create(
        model=model or settings.OPENAI_MODEL_DEFAULT,
        instructions=instructions,
        input=prompt,
        max_output_tokens=max_output_tokens,
    )
    text = response.output_text
    if not text:
        raise RuntimeError("Empty response from text generation")
    return text


async def agenerate_text(prompt: str, instructions: Optional[str] = None) -> str:
    """Run :func:`generate_text` off the event loop."""

    return await run_in_threadpool(generate_text, prompt, instructions)

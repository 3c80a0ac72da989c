"""Chat completion client for question and blog generation.

Thin wrapper over the async OpenAI SDK with retries on transient failures
and tolerant JSON extraction from model replies.
"""
from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from typing import Any

import openai
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from be.config import settings

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class LLMError(Exception):
    """Raised when a completion cannot be obtained or parsed."""
    pass


def is_configured() -> bool:
    """True when an API key is available."""
    return bool(settings.openai.api_key)


@lru_cache(maxsize=1)
def get_client() -> AsyncOpenAI:
    """Create and cache the async client.

    Raises:
        LLMError: If no API key is configured
    """
    if not settings.openai.api_key:
        raise LLMError("OPENAI_API_KEY environment variable is not set")
    return AsyncOpenAI(
        api_key=settings.openai.api_key,
        base_url=settings.openai.base_url,
        timeout=settings.openai.timeout,
        max_retries=0,
    )


@retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(settings.openai.max_retries),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
async def _create_completion(**kwargs: Any) -> str | None:
    client = get_client()
    response = await client.chat.completions.create(**kwargs)
    if not response.choices:
        return None
    return response.choices[0].message.content


async def complete(
    system: str,
    user: str,
    *,
    model: str,
    temperature: float = 0.7,
    max_tokens: int = 2000,
    json_mode: bool = False,
) -> str:
    """Run a single system + user chat completion.

    Args:
        system: System prompt
        user: User prompt
        model: Model name
        temperature: Sampling temperature
        max_tokens: Completion token cap
        json_mode: Ask the API for a JSON object response

    Returns:
        The reply text

    Raises:
        LLMError: On API failure or an empty reply
    """
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    try:
        content = await _create_completion(**kwargs)
    except LLMError:
        raise
    except openai.OpenAIError as e:
        logger.error(f"Completion failed on {model}: {e}")
        raise LLMError(f"Completion request failed: {e}") from e

    if not content:
        raise LLMError("No response from OpenAI")
    return content


def extract_json_object(content: str) -> dict[str, Any]:
    """Parse the outermost ``{...}`` block in a reply.

    Raises:
        LLMError: If no JSON object can be parsed
    """
    match = _JSON_OBJECT_RE.search(content or "")
    if not match:
        raise LLMError("No JSON object found in response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise LLMError(f"Invalid JSON in response: {e}") from e
    if not isinstance(data, dict):
        raise LLMError("Response JSON is not an object")
    return data


async def complete_json(
    system: str,
    user: str,
    *,
    model: str,
    temperature: float = 0.7,
    max_tokens: int = 2000,
    json_mode: bool = True,
) -> dict[str, Any]:
    """Like :func:`complete` but returns the parsed JSON object."""
    content = await complete(
        system,
        user,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        json_mode=json_mode,
    )
    try:
        return extract_json_object(content)
    except LLMError:
        logger.error(f"Failed to parse model reply as JSON: {content[:500]}")
        raise

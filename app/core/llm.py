"""Chat-completion helpers shared by research, inference and synthesis."""

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any

from openai import OpenAI

from app.core.errors import ProviderCallFailed
from app.core.logging import get_logger
from app.core.rate_limiter import RateLimiter

logger = get_logger(__name__)


@dataclass
class ChatResult:
    """Text returned by a chat completion plus provider extras."""

    text: str
    model: str
    citations: list[str] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)


def _usage_dict(response: Any) -> dict[str, int]:
    usage = getattr(response, "usage", None)
    if usage is None:
        return {}
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
        "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
        "total_tokens": getattr(usage, "total_tokens", 0) or 0,
    }


async def complete_chat(
    client: OpenAI,
    *,
    provider: str,
    model: str,
    messages: list[dict[str, str]],
    temperature: float = 0.3,
    max_tokens: int = 4000,
    limiter: RateLimiter | None = None,
    extra_body: dict[str, Any] | None = None,
) -> ChatResult:
    """
    Run a single chat completion in a worker thread.

    Args:
        client: OpenAI-compatible client
        provider: Provider name used for rate limiting and logs
        model: Model name
        messages: Chat messages
        temperature: Sampling temperature
        max_tokens: Max output tokens
        limiter: Optional sliding-window limiter keyed by provider
        extra_body: Provider-specific request fields

    Returns:
        ChatResult with the generated text and any citations

    Raises:
        ProviderCallFailed: On any transport or API error, or an empty response
    """
    if limiter is not None:
        await limiter.acquire(provider)

    kwargs: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if extra_body:
        kwargs["extra_body"] = extra_body

    try:
        response = await asyncio.to_thread(client.chat.completions.create, **kwargs)
    except Exception as e:
        logger.error(f"{provider} completion failed: {e}", extra={"provider": provider})
        raise ProviderCallFailed(str(e), provider=provider) from e

    choices = getattr(response, "choices", None) or []
    text = (choices[0].message.content or "") if choices else ""
    if not text.strip():
        raise ProviderCallFailed("Empty completion", provider=provider)

    # Perplexity returns citations as a top-level extra field
    citations = list(getattr(response, "citations", None) or [])
    usage = _usage_dict(response)

    logger.info(
        f"{provider} completion ok ({len(text)} chars, {len(citations)} citations)",
        extra={"provider": provider, "model": model, **usage},
    )
    return ChatResult(text=text, model=model, citations=citations, usage=usage)


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_llm_json_dict(raw_output: str) -> dict:
    """
    Parse LLM output as JSON, returning a raw dict.

    Args:
        raw_output: Raw string from LLM response

    Returns:
        Parsed dict from JSON

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        ValueError: If the JSON is not an object
    """
    parsed = json.loads(_strip_llm_fences(raw_output))
    if not isinstance(parsed, dict):
        raise ValueError("Expected a JSON object")
    return parsed

"""Chat-model client used for citation extraction (OpenAI-compatible or Anthropic)."""

from __future__ import annotations

import logging
import os
from typing import Any

import anthropic
import openai
from openai import OpenAI

from config import Settings
from errors import ExtractionError

EXTRACTION_TEMPERATURE = 0.1
ANTHROPIC_MAX_TOKENS = 8192

LOGGER = logging.getLogger(__name__)


def complete_prompt(prompt: str, settings: Settings) -> str:
    """Send one user prompt to the configured provider and return the reply text.

    Raises ExtractionError; ``retryable`` is True for rate limits, 5xx responses,
    timeouts and connection failures, False for everything else.
    """
    if settings.extraction_provider == "anthropic":
        return _call_anthropic(prompt, settings)
    return _call_openai(prompt, settings)


def _call_openai(prompt: str, settings: Settings) -> str:
    api_key = os.getenv("DEEPSEEK_API_KEY") or os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ExtractionError("DEEPSEEK_API_KEY or OPENAI_API_KEY environment variable is required")

    client = OpenAI(
        api_key=api_key,
        base_url=settings.extraction_base_url,
        timeout=settings.extraction_timeout,
        max_retries=0,
    )
    LOGGER.debug("Calling extraction model=%s base_url=%s", settings.extraction_model, settings.extraction_base_url)
    try:
        response = client.chat.completions.create(
            model=settings.extraction_model,
            temperature=EXTRACTION_TEMPERATURE,
            response_format={"type": "json_object"},
            messages=[{"role": "user", "content": prompt}],
        )
    except openai.APIStatusError as exc:
        raise _status_error("Extraction service", exc.status_code, exc) from exc
    except openai.APIConnectionError as exc:
        raise ExtractionError(f"Extraction service unreachable: {exc}", retryable=True) from exc
    except openai.OpenAIError as exc:
        raise ExtractionError(f"Extraction service call failed: {exc}") from exc

    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise ExtractionError(f"Unexpected extraction response shape: {response}", retryable=True) from exc
    if not content or not content.strip():
        raise ExtractionError("Extraction service returned empty message content", retryable=True)
    return content


def _call_anthropic(prompt: str, settings: Settings) -> str:
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise ExtractionError("ANTHROPIC_API_KEY environment variable is required")

    client = anthropic.Anthropic(api_key=api_key, timeout=settings.extraction_timeout, max_retries=0)
    kwargs: dict[str, Any] = {
        "model": settings.claude_model,
        "max_tokens": ANTHROPIC_MAX_TOKENS,
        "temperature": EXTRACTION_TEMPERATURE,
        "messages": [{"role": "user", "content": prompt}],
    }
    LOGGER.debug("Calling Claude model=%s max_tokens=%s", settings.claude_model, ANTHROPIC_MAX_TOKENS)
    try:
        response = client.messages.create(**kwargs)
    except anthropic.APIStatusError as exc:
        raise _status_error("Claude", exc.status_code, exc) from exc
    except anthropic.APIConnectionError as exc:
        raise ExtractionError(f"Claude unreachable: {exc}", retryable=True) from exc
    except anthropic.AnthropicError as exc:
        raise ExtractionError(f"Claude call failed: {exc}") from exc

    text = "".join(getattr(block, "text", "") for block in response.content)
    if not text.strip():
        raise ExtractionError("Claude returned an empty response", retryable=True)
    return text


def _status_error(service: str, status_code: int, exc: Exception) -> ExtractionError:
    retryable = status_code == 429 or status_code >= 500
    return ExtractionError(f"{service} returned HTTP {status_code}: {exc}", retryable=retryable)

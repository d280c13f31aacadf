"""Shared Claude call helper: JSON completion, response parsing, cost tracking."""

import json
import logging
import time
from typing import Optional
from uuid import UUID

import anthropic
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.config import get_settings
from consultantos.storage.ai_log import store_ai_conversation

logger = logging.getLogger(__name__)

# USD per million tokens
INPUT_TOKEN_PRICE = 0.25
OUTPUT_TOKEN_PRICE = 1.25


class LLMNotConfigured(RuntimeError):
    """Raised when no Anthropic API key is available."""


def estimate_cost(input_tokens: int, output_tokens: int) -> float:
    return (input_tokens * INPUT_TOKEN_PRICE + output_tokens * OUTPUT_TOKEN_PRICE) / 1_000_000


def parse_json_object(raw_text: str) -> Optional[dict]:
    """Pull the JSON object out of a model response.

    Tolerates markdown code fences and prose before or after the object.
    Returns None when no object can be decoded.
    """
    try:
        text = raw_text.strip()
        if text.startswith("```"):
            text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.rstrip().endswith("```"):
            text = text.rstrip()
            text = text[:-3]

        start = text.index("{")
        end = text.rindex("}") + 1
        parsed = json.loads(text[start:end])
    except (json.JSONDecodeError, ValueError):
        logger.warning("Failed to parse JSON from model response: %s", raw_text[:300])
        return None

    if not isinstance(parsed, dict):
        return None
    return parsed


def response_text(response) -> Optional[str]:
    """Text of the first text block in a Messages API response, if any."""
    for block in response.content or []:
        if getattr(block, "type", None) == "text":
            return block.text
    return None


def _get_client() -> anthropic.AsyncAnthropic:
    settings = get_settings()
    if not settings.anthropic.api_key:
        raise LLMNotConfigured("No Anthropic API key configured")
    return anthropic.AsyncAnthropic(
        api_key=settings.anthropic.api_key,
        timeout=settings.anthropic.timeout_seconds,
    )


async def complete_json(
    *,
    call_type: str,
    system: str,
    user_prompt: str,
    prompt_version: str,
    model: Optional[str] = None,
    max_tokens: int = 2000,
    session: Optional[AsyncSession] = None,
    source_id: Optional[UUID] = None,
    client_id: Optional[UUID] = None,
) -> Optional[dict]:
    """Send one prompt to Claude and return the parsed JSON object.

    Network and API errors propagate to the caller. A response without a text
    block, or whose text holds no JSON object, yields None. When a database
    session is given the call is logged to ``ai_conversations``.
    """
    settings = get_settings()
    model = model or settings.anthropic.model
    client = _get_client()
    messages = [{"role": "user", "content": user_prompt}]

    start_time = time.time()
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=messages,
    )
    latency_ms = int((time.time() - start_time) * 1000)

    raw_text = response_text(response)
    if raw_text is None:
        logger.warning("%s response had no text content", call_type)
        parsed = None
    else:
        parsed = parse_json_object(raw_text)

    input_tokens = response.usage.input_tokens
    output_tokens = response.usage.output_tokens
    cost_usd = estimate_cost(input_tokens, output_tokens)

    if session is not None and settings.anthropic.store_ai_conversations:
        await store_ai_conversation(
            session=session,
            call_type=call_type,
            model=model,
            prompt_version=prompt_version,
            request_messages=[{"role": "system", "content": system}, *messages],
            response_content={"raw": raw_text, "parsed": parsed},
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost_usd,
            latency_ms=latency_ms,
            source_id=source_id,
            client_id=client_id,
        )

    logger.debug("%s call finished in %dms (cost: $%.4f)", call_type, latency_ms, cost_usd)
    return parsed

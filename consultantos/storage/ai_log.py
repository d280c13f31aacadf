"""Permanent record of every LLM call made by ConsultantOS."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.storage.models import AIConversation

logger = logging.getLogger(__name__)


async def store_ai_conversation(
    session: AsyncSession,
    call_type: str,
    model: str,
    request_messages: list[dict],
    response_content: dict,
    prompt_version: Optional[str] = None,
    input_tokens: Optional[int] = None,
    output_tokens: Optional[int] = None,
    cost_usd: Optional[float] = None,
    latency_ms: Optional[int] = None,
    source_id: Optional[UUID] = None,
    client_id: Optional[UUID] = None,
) -> AIConversation:
    """Log an AI API call for permanent record."""
    conv = AIConversation(
        call_type=call_type,
        model=model,
        prompt_version=prompt_version,
        request_messages=request_messages,
        response_content=response_content,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_usd=cost_usd,
        latency_ms=latency_ms,
        source_id=source_id,
        client_id=client_id,
    )
    session.add(conv)
    await session.flush()
    logger.debug("Logged %s call (%s tokens in, %s out)", call_type, input_tokens, output_tokens)
    return conv


async def get_ai_cost_summary(session: AsyncSession) -> dict[str, dict]:
    """Total calls and estimated spend per call type."""
    result = await session.execute(
        select(
            AIConversation.call_type,
            func.count(AIConversation.id),
            func.coalesce(func.sum(AIConversation.cost_usd), 0.0),
        ).group_by(AIConversation.call_type)
    )
    return {
        call_type: {"calls": count, "cost_usd": float(cost)}
        for call_type, count, cost in result.all()
    }

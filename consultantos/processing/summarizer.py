"""Consulting-focused source summaries and transcript titles via Claude."""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.config import get_settings
from consultantos.processing.llm import complete_json

logger = logging.getLogger(__name__)

SUMMARY_PROMPT_VERSION = "v1.0"
TITLE_PROMPT_VERSION = "v1.0"

TRUNCATION_MARKER = "\n\n[...content truncated...]\n\n"
MAX_TITLE_LENGTH = 50
UNTITLED_TRANSCRIPT = "Untitled Transcript"

SUMMARY_SYSTEM = """You are an assistant to an independent business consultant.
You read documents, transcripts and notes that belong to the consultant's clients
and explain why they matter for the engagement.

Return ONLY valid JSON with these fields:
- whatItIs: brief description of what this document is (1-2 sentences)
- whyItMatters: why this is relevant for consulting this client (1-2 sentences)
- keyInsights: 3-5 key insights or important points from the document
- suggestedUses: 2-4 ways this could be used in consulting sessions or strategy

Focus on actionable insights for a consultant."""

TITLE_SYSTEM = """You name consulting session transcripts.
Return ONLY valid JSON of the form {"title": "..."} with a concise, descriptive
title of 5-10 words. No quotes or punctuation around the title itself."""


class SummaryError(Exception):
    """The language model could not produce a usable summary."""


class SourceSummary(BaseModel):
    """Structured AI summary stored on a Source as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    what_it_is: str = "Document uploaded for reference"
    why_it_matters: str = "Added to client knowledge base"
    key_insights: list[str] = Field(default_factory=list)
    suggested_uses: list[str] = Field(default_factory=list)
    generated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    edited_at: Optional[str] = None
    is_edited: Optional[bool] = None

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def truncate_for_summary(content: str, max_chars: int) -> str:
    """Keep the first and last halves of over-long content around a marker."""
    if len(content) <= max_chars:
        return content
    half = max_chars // 2
    return content[:half] + TRUNCATION_MARKER + content[-half:]


def _build_summary_prompt(
    content: str,
    file_name: Optional[str],
    file_type: Optional[str],
    client_name: Optional[str],
    source_type: Optional[str],
) -> str:
    header = f"Analyze this {source_type or 'document'}"
    if client_name:
        header += f' for client "{client_name}"'

    lines = [header + ":", ""]
    if file_name:
        lines.append(f"File: {file_name}")
    if file_type:
        lines.append(f"Type: {file_type}")
    lines.extend(["", "Content:", content, "", "Provide the consulting-focused analysis as JSON."])
    return "\n".join(lines)


async def generate_source_summary(
    content: str,
    *,
    file_name: Optional[str] = None,
    file_type: Optional[str] = None,
    client_name: Optional[str] = None,
    source_type: Optional[str] = None,
    session: Optional[AsyncSession] = None,
    source_id: Optional[UUID] = None,
    client_id: Optional[UUID] = None,
) -> SourceSummary:
    """Ask Claude for a structured summary of a source's content.

    Raises:
        SummaryError: On any failure of the model call or its response.
    """
    settings = get_settings()
    truncated = truncate_for_summary(content, settings.ingestion.summary_max_chars)
    prompt = _build_summary_prompt(truncated, file_name, file_type, client_name, source_type)

    try:
        parsed = await complete_json(
            call_type="source_summary",
            system=SUMMARY_SYSTEM,
            user_prompt=prompt,
            prompt_version=SUMMARY_PROMPT_VERSION,
            model=settings.anthropic.summary_model,
            max_tokens=1500,
            session=session,
            source_id=source_id,
            client_id=client_id,
        )
    except Exception as e:
        raise SummaryError(f"Summary request failed: {e}") from e

    if parsed is None:
        raise SummaryError("Summary response was not valid JSON")

    try:
        summary = SourceSummary.model_validate(parsed)
    except ValidationError as e:
        raise SummaryError(f"Summary response had unexpected shape: {e}") from e

    logger.info(
        "Generated summary for %s: %d insights, %d suggested uses",
        file_name or source_type or "source",
        len(summary.key_insights),
        len(summary.suggested_uses),
    )
    return summary


def fallback_transcript_title(content: str) -> str:
    """First meaningful line of the transcript, shortened for display."""
    for line in content.splitlines():
        line = line.strip()
        if len(line) > 10:
            if len(line) > MAX_TITLE_LENGTH:
                return line[:MAX_TITLE_LENGTH] + "..."
            return line
    return UNTITLED_TRANSCRIPT


async def generate_transcript_title(content: str, session: Optional[AsyncSession] = None) -> str:
    """Short descriptive title for a staged transcript.

    Falls back to the first meaningful line when Claude is unavailable or
    returns something unusable.
    """
    try:
        parsed = await complete_json(
            call_type="transcript_title",
            system=TITLE_SYSTEM,
            user_prompt=f"Transcript excerpt:\n\n{content[:2000]}",
            prompt_version=TITLE_PROMPT_VERSION,
            max_tokens=100,
            session=session,
        )
    except Exception as e:
        logger.warning("Transcript title generation failed: %s", e)
        return fallback_transcript_title(content)

    title = (parsed or {}).get("title")
    if not isinstance(title, str) or not title.strip():
        return fallback_transcript_title(content)
    return title.strip().strip("\"'")

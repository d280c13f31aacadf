"""Staged transcript uploads (the transcript inbox)."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.errors import TranscriptNotFoundError
from consultantos.processing.sanitizer import sanitize
from consultantos.storage.models import TranscriptUpload

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"title", "content", "session_date", "duration", "notes", "status"})


async def create_transcript(
    session: AsyncSession,
    user_id: str,
    content: str,
    title: Optional[str] = None,
    session_date: Optional[datetime] = None,
    duration: Optional[int] = None,
    notes: Optional[str] = None,
    source_type: str = "paste",
    original_filename: Optional[str] = None,
) -> TranscriptUpload:
    transcript = TranscriptUpload(
        user_id=user_id,
        title=title,
        content=sanitize(content),
        session_date=session_date,
        duration=duration,
        notes=sanitize(notes) if notes else None,
        source_type=source_type,
        original_filename=original_filename,
        status="inbox",
    )
    session.add(transcript)
    await session.flush()
    logger.info("Staged transcript %s (%d chars)", transcript.id, len(transcript.content))
    return transcript


async def get_transcript(session: AsyncSession, transcript_id: UUID, user_id: str) -> TranscriptUpload:
    result = await session.execute(
        select(TranscriptUpload).where(
            TranscriptUpload.id == transcript_id,
            TranscriptUpload.user_id == user_id,
        )
    )
    transcript = result.scalar_one_or_none()
    if transcript is None:
        raise TranscriptNotFoundError(f"Transcript {transcript_id} not found")
    return transcript


async def list_transcripts(
    session: AsyncSession, user_id: str, status: Optional[str] = None
) -> list[TranscriptUpload]:
    query = select(TranscriptUpload).where(TranscriptUpload.user_id == user_id)
    if status:
        query = query.where(TranscriptUpload.status == status)
    result = await session.execute(query.order_by(TranscriptUpload.created_at.desc()))
    return list(result.scalars().all())


async def update_transcript(
    session: AsyncSession, transcript_id: UUID, user_id: str, **fields
) -> TranscriptUpload:
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    transcript = await get_transcript(session, transcript_id, user_id)
    for name, value in fields.items():
        if name in ("content", "notes") and value:
            value = sanitize(value)
        setattr(transcript, name, value)
    await session.flush()
    return transcript


async def delete_transcript(session: AsyncSession, transcript_id: UUID, user_id: str) -> None:
    result = await session.execute(
        delete(TranscriptUpload).where(
            TranscriptUpload.id == transcript_id,
            TranscriptUpload.user_id == user_id,
        )
    )
    if result.rowcount == 0:
        raise TranscriptNotFoundError(f"Transcript {transcript_id} not found")

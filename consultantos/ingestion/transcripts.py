"""Turn a staged transcript into a historic session with indexed sources."""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.config import get_settings
from consultantos.ingestion.pipeline import ingest_source
from consultantos.processing.sanitizer import sanitize
from consultantos.processing.summarizer import fallback_transcript_title
from consultantos.storage.clients import create_historic_session, get_client
from consultantos.storage.jobs import KIND_SESSION_INSIGHTS, enqueue_job
from consultantos.storage.transcripts import get_transcript

logger = logging.getLogger(__name__)


async def assign_transcript_to_session(
    session: AsyncSession,
    transcript_id: UUID,
    user_id: str,
    client_id: UUID,
    title: Optional[str] = None,
    session_date: Optional[datetime] = None,
    duration_minutes: Optional[int] = None,
) -> dict:
    """Assign an inbox transcript to a client as a completed session.

    Creates the historic session, a ``session_transcript`` source and, when
    the notes are substantial, a ``session_notes`` source. Source processing
    and insight extraction are queued as background jobs.

    Raises:
        TranscriptNotFoundError: If the transcript does not exist for this user.
        ClientNotFoundError: If the client does not exist for this user.
        ValueError: If the transcript was already assigned.
    """
    settings = get_settings()
    transcript = await get_transcript(session, transcript_id, user_id)
    if transcript.status == "assigned":
        raise ValueError(f"Transcript {transcript_id} is already assigned to a session")
    client = await get_client(session, client_id, user_id)

    clean_content = sanitize(transcript.content)
    notes = sanitize(transcript.notes) if transcript.notes else None
    title = title or transcript.title or fallback_transcript_title(clean_content)
    session_date = session_date or transcript.session_date
    duration_minutes = duration_minutes or transcript.duration

    consulting_session = await create_historic_session(
        session,
        user_id,
        client_id,
        title,
        session_date=session_date,
        duration_minutes=duration_minutes,
        transcript=clean_content,
        notes=notes,
    )

    transcript.status = "assigned"
    transcript.client_id = client_id
    transcript.session_id = consulting_session.id
    transcript.processed_at = datetime.now(timezone.utc)

    sources = [
        await ingest_source(
            session,
            user_id,
            client_id,
            "session_transcript",
            f"Session Transcript: {title}",
            f"# Session Transcript: {title}\n\n{clean_content}",
            metadata={
                "sessionId": str(consulting_session.id),
                "transcriptUploadId": str(transcript.id),
                "contentType": "transcript",
            },
        )
    ]

    if notes and len(notes.strip()) > settings.ingestion.min_notes_length:
        sources.append(
            await ingest_source(
                session,
                user_id,
                client_id,
                "session_notes",
                f"Session Notes: {title}",
                f"# Session Notes: {title}\n\n{notes}",
                metadata={
                    "sessionId": str(consulting_session.id),
                    "contentType": "notes",
                },
            )
        )

    await enqueue_job(
        session,
        KIND_SESSION_INSIGHTS,
        {
            "consulting_session_id": str(consulting_session.id),
            "client_id": str(client_id),
            "user_id": user_id,
            "session_title": title,
            "client_name": client.name,
        },
        dedupe_key=f"session_insights:{consulting_session.id}",
        max_attempts=settings.worker.insights_max_attempts,
    )

    await session.flush()
    logger.info(
        "Assigned transcript %s to session %s (%d sources queued)",
        transcript_id,
        consulting_session.id,
        len(sources),
    )
    return {"session": consulting_session, "sources": sources, "transcript": transcript}

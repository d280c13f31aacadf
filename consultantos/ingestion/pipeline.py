"""Source ingestion pipeline: sanitize, summarize, chunk, embed.

Triggers (uploads, transcript assignment, reprocess requests) only create and
claim the source and enqueue a ``source_process`` job. The worker then runs
``process_source``, committing after each step so progress survives a crash.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.config import get_settings
from consultantos.errors import InvalidStatusTransition, SourceBusyError
from consultantos.processing.embeddings import EmbeddingError
from consultantos.processing.sanitizer import sanitize
from consultantos.processing.summarizer import SummaryError, generate_source_summary
from consultantos.storage.db import get_session
from consultantos.storage.jobs import KIND_SOURCE_PROCESS, enqueue_job
from consultantos.storage.models import Client, IngestionJob, Source
from consultantos.storage.sources import (
    claim_source,
    create_source,
    get_source,
    mark_source_completed,
    set_source_error,
    update_source_content,
    update_source_summary,
)
from consultantos.storage.vectors import delete_source_chunks, process_source_embeddings

logger = logging.getLogger(__name__)

NO_CONTENT_ERROR = "No content could be extracted"
EMPTY_CONTENT_REASON = "Content was empty after sanitization"


async def enqueue_source_job(
    session: AsyncSession,
    source: Source,
    force_regenerate: bool = False,
) -> Optional[IngestionJob]:
    """Queue background processing for a claimed source."""
    return await enqueue_job(
        session,
        KIND_SOURCE_PROCESS,
        {
            "source_id": str(source.id),
            "user_id": source.user_id,
            "force_regenerate": force_regenerate,
        },
        max_attempts=get_settings().worker.source_max_attempts,
    )


async def ingest_source(
    session: AsyncSession,
    user_id: str,
    client_id: Optional[UUID],
    type: str,
    name: str,
    content: Optional[str],
    metadata: Optional[dict] = None,
    **fields,
) -> Source:
    """Create a source, claim it and queue it for processing."""
    source = await create_source(
        session,
        user_id,
        client_id,
        type,
        name,
        content=content,
        metadata=metadata,
        **fields,
    )
    claimed = await claim_source(session, source.id, user_id)
    await enqueue_source_job(session, claimed or source)
    logger.info("Queued new %s source %s (%s)", type, source.id, name)
    return claimed or source


async def reprocess_source(session: AsyncSession, source_id: UUID, user_id: str) -> Source:
    """Claim an existing source and queue a forced regeneration.

    Raises:
        SourceNotFoundError: If the source does not exist for this user.
        SourceBusyError: If the source is already being processed.
    """
    source = await claim_source(session, source_id, user_id)
    if source is None:
        raise SourceBusyError(f"Source {source_id} is already processing")
    await enqueue_source_job(session, source, force_regenerate=True)
    logger.info("Queued reprocessing for source %s", source_id)
    return source


async def process_source(source_id: UUID, user_id: str, force_regenerate: bool = False) -> dict:
    """Run the processing steps for one claimed source.

    Returns a summary dict with the final status and chunk count.
    """
    summary = {"source_id": str(source_id), "status": None, "chunks": 0, "summary": False}

    # 1. Sanitize and store content
    async with get_session() as session:
        source = await get_source(session, source_id, user_id)
        if source.processing_status != "processing":
            logger.info(
                "Source %s is %s, not claimed for processing; skipping",
                source_id,
                source.processing_status,
            )
            summary["status"] = "skipped"
            return summary

        if source.content is None:
            await set_source_error(session, source_id, user_id, NO_CONTENT_ERROR)
            summary["status"] = "failed"
            return summary

        content = sanitize(source.content)
        if content != source.content:
            await update_source_content(session, source_id, user_id, content)

        if not content.strip():
            await mark_source_completed(session, source_id, user_id, empty_reason=EMPTY_CONTENT_REASON)
            summary["status"] = "completed"
            return summary

        client_id = source.client_id
        client = await session.get(Client, client_id) if client_id else None
        client_name = client.name if client else None
        needs_summary = force_regenerate or source.ai_summary is None
        chunk_metadata = {"sourceName": source.name, "sourceType": source.type}
        summary_context = {
            "file_name": source.original_filename or source.name,
            "file_type": source.file_type,
            "source_type": source.type,
        }

    # 2. Summary (best effort)
    if needs_summary:
        try:
            async with get_session() as session:
                result = await generate_source_summary(
                    content,
                    client_name=client_name,
                    session=session,
                    source_id=source_id,
                    client_id=client_id,
                    **summary_context,
                )
                await update_source_summary(session, source_id, user_id, result.to_record())
            summary["summary"] = True
        except SummaryError as e:
            logger.warning("Summary skipped for source %s: %s", source_id, e)

    # 3. Chunks and embeddings
    try:
        async with get_session() as session:
            summary["chunks"] = await process_source_embeddings(
                session,
                source_id,
                client_id,
                user_id,
                force_regenerate,
                content,
                metadata=chunk_metadata,
            )
            await mark_source_completed(session, source_id, user_id)
    except EmbeddingError as e:
        logger.error("Embedding failed for source %s: %s", source_id, e)
        async with get_session() as session:
            source = await get_source(session, source_id, user_id)
            if source.processing_status != "processing":
                logger.info("Source %s was reset to %s; not marking failed", source_id, source.processing_status)
                summary["status"] = "skipped"
                return summary
            await delete_source_chunks(session, source_id)
            await set_source_error(session, source_id, user_id, f"Embedding failed: {e}")
        summary["status"] = "failed"
        return summary
    except InvalidStatusTransition as e:
        logger.info("Source %s left processing during indexing (%s); dropping results", source_id, e)
        summary["status"] = "skipped"
        return summary

    summary["status"] = "completed"
    logger.info("Processed source %s: %d chunks", source_id, summary["chunks"])
    return summary

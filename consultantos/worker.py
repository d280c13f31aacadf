"""Background worker: claims ingestion jobs and dispatches them."""

import logging
from typing import Optional
from uuid import UUID

from consultantos.config import get_settings
from consultantos.ingestion.pipeline import process_source
from consultantos.processing.extractor import process_session_insights
from consultantos.storage.db import get_session
from consultantos.storage.jobs import (
    KIND_SESSION_INSIGHTS,
    KIND_SOURCE_PROCESS,
    claim_job,
    complete_job,
    expire_stale_leases,
    fail_job,
)
from consultantos.storage.models import ConsultingSession, IngestionJob, Source

logger = logging.getLogger(__name__)


async def process_source_job(job: IngestionJob) -> None:
    payload = job.payload
    result = await process_source(
        UUID(payload["source_id"]),
        payload["user_id"],
        force_regenerate=payload.get("force_regenerate", False),
    )
    logger.info("Source job %s finished: %s", job.id, result["status"])


async def process_session_insights_job(job: IngestionJob) -> None:
    """Extract insights for a consulting session; missing sessions are skipped."""
    payload = job.payload
    consulting_session_id = UUID(payload["consulting_session_id"])

    async with get_session() as session:
        consulting_session = await session.get(ConsultingSession, consulting_session_id)
        if consulting_session is None or not consulting_session.transcript:
            logger.info("Session %s has no transcript, skipping insights", consulting_session_id)
            return

        await process_session_insights(
            session,
            consulting_session_id,
            UUID(payload["client_id"]),
            payload["user_id"],
            consulting_session.transcript,
            session_title=payload.get("session_title") or consulting_session.title,
            client_name=payload.get("client_name"),
        )


async def _dispatch_job(job: IngestionJob) -> None:
    if job.kind == KIND_SOURCE_PROCESS:
        await process_source_job(job)
    elif job.kind == KIND_SESSION_INSIGHTS:
        await process_session_insights_job(job)
    else:
        raise ValueError(f"Unknown job kind: {job.kind}")


async def _mark_source_abandoned(job: IngestionJob, error: str) -> None:
    """Leave a failed source behind when its job will not be retried."""
    if job.kind != KIND_SOURCE_PROCESS or job.attempts < job.max_attempts:
        return
    async with get_session() as session:
        source = await session.get(Source, UUID(job.payload["source_id"]))
        if source is not None and source.processing_status == "processing":
            source.processing_status = "failed"
            source.processing_error = f"Processing gave up after {job.attempts} attempts: {error}"


async def process_pending_jobs(max_jobs: Optional[int] = None, kinds: Optional[list[str]] = None) -> int:
    """Claim and run queued jobs until the queue is empty or ``max_jobs`` is reached.

    Returns the number of jobs that completed successfully.
    """
    if max_jobs is None:
        max_jobs = get_settings().worker.max_jobs_per_cycle

    async with get_session() as session:
        await expire_stale_leases(session)

    processed = 0
    for _ in range(max_jobs):
        async with get_session() as session:
            job = await claim_job(session, kinds=kinds)
        if job is None:
            break

        try:
            await _dispatch_job(job)
        except Exception as e:
            logger.error("Job %s (%s) failed: %s", job.id, job.kind, e, exc_info=True)
            async with get_session() as session:
                await fail_job(session, job.id, str(e))
            await _mark_source_abandoned(job, str(e))
            continue

        async with get_session() as session:
            await complete_job(session, job.id)
        processed += 1

    if processed:
        logger.info("Processed %d ingestion jobs", processed)
    return processed

"""Durable ingestion job queue backed by PostgreSQL.

Jobs are claimed with ``FOR UPDATE SKIP LOCKED`` so several workers can
poll the same table. A claimed job holds a lease (``locked_until``); if the
worker dies, the lease expires and the job is retried.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import bindparam, func, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.config import get_settings
from consultantos.storage.models import IngestionJob

logger = logging.getLogger(__name__)

KIND_SOURCE_PROCESS = "source_process"
KIND_SESSION_INSIGHTS = "session_insights"

RETRY_BASE_SECONDS = 30
RETRY_MAX_SECONDS = 3600


def retry_delay(attempts: int) -> timedelta:
    """Exponential backoff: 30s, 60s, 120s ... capped at one hour."""
    seconds = RETRY_BASE_SECONDS * (2 ** max(attempts - 1, 0))
    return timedelta(seconds=min(seconds, RETRY_MAX_SECONDS))


async def enqueue_job(
    session: AsyncSession,
    kind: str,
    payload: dict,
    dedupe_key: Optional[str] = None,
    priority: int = 10,
    max_attempts: int = 3,
) -> Optional[IngestionJob]:
    """Add a job to the queue.

    With a ``dedupe_key`` the insert is skipped (returning None) when a job
    with the same key already exists.
    """
    job_id = uuid.uuid4()

    if dedupe_key is None:
        job = IngestionJob(
            id=job_id,
            kind=kind,
            payload=payload,
            priority=priority,
            max_attempts=max_attempts,
        )
        session.add(job)
        await session.flush()
        logger.debug("Enqueued %s job %s", kind, job_id)
        return job

    result = await session.execute(
        pg_insert(IngestionJob)
        .values(
            id=job_id,
            kind=kind,
            dedupe_key=dedupe_key,
            payload=payload,
            status="queued",
            priority=priority,
            attempts=0,
            max_attempts=max_attempts,
        )
        .on_conflict_do_nothing(index_elements=["dedupe_key"])
    )
    if result.rowcount == 0:
        logger.debug("Job with dedupe key %s already queued", dedupe_key)
        return None

    await session.flush()
    logger.debug("Enqueued %s job %s (%s)", kind, job_id, dedupe_key)
    return await session.get(IngestionJob, job_id)


async def claim_job(session: AsyncSession, kinds: Optional[list[str]] = None) -> Optional[IngestionJob]:
    """Claim the next runnable job, or None when the queue is empty."""
    lease_seconds = get_settings().worker.lease_seconds
    kind_filter = "AND kind IN :kinds" if kinds else ""

    stmt = text(f"""
        UPDATE ingestion_jobs
        SET status = 'processing',
            attempts = attempts + 1,
            locked_until = now() + make_interval(secs => :lease_seconds),
            updated_at = now()
        WHERE id = (
            SELECT id FROM ingestion_jobs
            WHERE status IN ('queued', 'retry')
              AND (locked_until IS NULL OR locked_until <= now())
              {kind_filter}
            ORDER BY priority, created_at
            FOR UPDATE SKIP LOCKED
            LIMIT 1
        )
        RETURNING id
    """)
    params: dict = {"lease_seconds": lease_seconds}
    if kinds:
        stmt = stmt.bindparams(bindparam("kinds", expanding=True))
        params["kinds"] = list(kinds)

    result = await session.execute(stmt, params)
    row = result.fetchone()
    if row is None:
        return None

    job = await session.get(IngestionJob, row[0], populate_existing=True)
    logger.debug("Claimed job %s", row[0])
    return job


async def complete_job(session: AsyncSession, job_id: uuid.UUID) -> None:
    await session.execute(
        update(IngestionJob)
        .where(IngestionJob.id == job_id)
        .values(status="done", locked_until=None, error_message=None)
    )


async def fail_job(session: AsyncSession, job_id: uuid.UUID, error: str) -> None:
    """Record a failed attempt: schedule a retry, or give up at max_attempts."""
    job = await session.get(IngestionJob, job_id)
    if job is None:
        return

    if job.attempts >= job.max_attempts:
        status = "failed"
        locked_until = None
        logger.error("Job %s (%s) failed permanently: %s", job_id, job.kind, error)
    else:
        status = "retry"
        locked_until = datetime.now(timezone.utc) + retry_delay(job.attempts)
        logger.warning(
            "Job %s (%s) failed, attempt %d/%d: %s",
            job_id, job.kind, job.attempts, job.max_attempts, error,
        )

    await session.execute(
        update(IngestionJob)
        .where(IngestionJob.id == job_id)
        .values(status=status, locked_until=locked_until, error_message=error[:2000])
    )


async def expire_stale_leases(session: AsyncSession) -> int:
    """Return jobs whose worker lease ran out to the retry state."""
    result = await session.execute(
        update(IngestionJob)
        .where(
            IngestionJob.status == "processing",
            IngestionJob.locked_until < func.now(),
        )
        .values(status="retry", locked_until=None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.warning("Expired %d stale job leases", result.rowcount)
    return result.rowcount


async def get_job_stats(session: AsyncSession) -> dict[str, int]:
    """Job counts by status."""
    result = await session.execute(
        select(IngestionJob.status, func.count()).group_by(IngestionJob.status)
    )
    return {status: count for status, count in result.all()}

"""Source records: creation, lookup, status lifecycle and edits."""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.errors import InvalidStatusTransition, SourceNotFoundError
from consultantos.storage.models import Source

logger = logging.getLogger(__name__)

# Forward moves of the processing lifecycle. Claiming a failed or completed
# source for reprocessing is the only way back into "processing".
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing"}),
    "processing": frozenset({"completed", "failed"}),
    "failed": frozenset({"processing"}),
    "completed": frozenset({"processing"}),
}

CLAIMABLE_STATUSES = ("pending", "failed", "completed")

# Manual overrides from the UI ("Kill" a stuck job, or mark it done).
RESET_STATUSES = frozenset({"pending", "completed"})


def check_transition(current: str, target: str) -> None:
    """Raise InvalidStatusTransition unless ``current -> target`` is allowed."""
    if target not in STATUS_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(current, target)


async def create_source(
    session: AsyncSession,
    user_id: str,
    client_id: Optional[UUID],
    type: str,
    name: str,
    *,
    status: str = "pending",
    metadata: Optional[dict] = None,
    content: Optional[str] = None,
    url: Optional[str] = None,
    blob_url: Optional[str] = None,
    original_filename: Optional[str] = None,
    file_type: Optional[str] = None,
    file_size: Optional[int] = None,
) -> Source:
    """Insert a new source record."""
    source = Source(
        user_id=user_id,
        client_id=client_id,
        type=type,
        name=name,
        processing_status=status,
        metadata_=metadata or {},
        content=content,
        url=url,
        blob_url=blob_url,
        original_filename=original_filename,
        file_type=file_type,
        file_size=file_size,
    )
    session.add(source)
    await session.flush()
    logger.debug("Created source %s (%s) for user %s", source.id, type, user_id)
    return source


async def get_source(session: AsyncSession, source_id: UUID, user_id: str) -> Source:
    """Fetch a source owned by ``user_id``.

    Raises:
        SourceNotFoundError: If no source matches the id/owner pair.
    """
    result = await session.execute(
        select(Source).where(Source.id == source_id, Source.user_id == user_id)
    )
    source = result.scalar_one_or_none()
    if source is None:
        raise SourceNotFoundError(f"Source {source_id} not found")
    return source


async def list_sources(
    session: AsyncSession,
    user_id: str,
    client_id: Optional[UUID] = None,
    status: Optional[str] = None,
) -> list[Source]:
    """List a user's sources, newest first."""
    query = select(Source).where(Source.user_id == user_id)
    if client_id is not None:
        query = query.where(Source.client_id == client_id)
    if status:
        query = query.where(Source.processing_status == status)
    query = query.order_by(Source.created_at.desc())
    result = await session.execute(query)
    return list(result.scalars().all())


async def update_source_content(
    session: AsyncSession, source_id: UUID, user_id: str, content: str
) -> Source:
    source = await get_source(session, source_id, user_id)
    source.content = content
    source.last_processed_at = datetime.now(timezone.utc)
    await session.flush()
    return source


async def update_source_summary(
    session: AsyncSession,
    source_id: UUID,
    user_id: str,
    summary: dict,
    *,
    edited: bool = False,
) -> Source:
    """Store the structured AI summary.

    Manual edits keep the original ``generatedAt`` when present and are
    stamped with ``editedAt`` and ``isEdited``.
    """
    source = await get_source(session, source_id, user_id)
    now = datetime.now(timezone.utc).isoformat()
    record = dict(summary)
    if edited:
        record.setdefault("generatedAt", (source.ai_summary or {}).get("generatedAt", now))
        record["editedAt"] = now
        record["isEdited"] = True
    else:
        record.setdefault("generatedAt", now)
    source.ai_summary = record
    await session.flush()
    return source


async def set_source_error(
    session: AsyncSession, source_id: UUID, user_id: str, message: str
) -> Source:
    """Mark a processing source as failed with an error message."""
    source = await get_source(session, source_id, user_id)
    check_transition(source.processing_status, "failed")
    source.processing_status = "failed"
    source.processing_error = message or "Unknown processing error"
    await session.flush()
    logger.warning("Source %s failed: %s", source_id, source.processing_error)
    return source


async def mark_source_completed(
    session: AsyncSession,
    source_id: UUID,
    user_id: str,
    *,
    empty_reason: Optional[str] = None,
) -> Source:
    """Move a processing source to completed.

    A source without content must carry ``empty_reason``, which is recorded
    as ``metadata.emptyReason``.
    """
    source = await get_source(session, source_id, user_id)
    check_transition(source.processing_status, "completed")
    if not source.content and not empty_reason:
        raise ValueError(f"Source {source_id} has no content and no empty reason")

    if empty_reason:
        source.metadata_ = {**(source.metadata_ or {}), "emptyReason": empty_reason}
    source.processing_status = "completed"
    source.processing_error = None
    source.last_processed_at = datetime.now(timezone.utc)
    await session.flush()
    return source


async def claim_source(session: AsyncSession, source_id: UUID, user_id: str) -> Optional[Source]:
    """Atomically move a source into ``processing``.

    Only one caller can win the claim. Returns None when the source is
    already being processed.

    Raises:
        SourceNotFoundError: If no source matches the id/owner pair.
    """
    result = await session.execute(
        update(Source)
        .where(
            Source.id == source_id,
            Source.user_id == user_id,
            Source.processing_status.in_(CLAIMABLE_STATUSES),
        )
        .values(processing_status="processing", processing_error=None)
        .returning(Source)
        .execution_options(synchronize_session=False)
    )
    claimed = result.scalar_one_or_none()
    if claimed is not None:
        logger.debug("Claimed source %s", source_id)
        return claimed

    # Distinguish "busy" from "missing"
    await get_source(session, source_id, user_id)
    return None


async def reset_source_status(
    session: AsyncSession, source_id: UUID, user_id: str, status: str
) -> Source:
    """Explicitly override the stored status to ``pending`` or ``completed``.

    This does not stop a running job.
    """
    source = await get_source(session, source_id, user_id)
    if status not in RESET_STATUSES:
        raise InvalidStatusTransition(source.processing_status, status)
    if status == "completed" and not source.content:
        source.metadata_ = {**(source.metadata_ or {}), "emptyReason": "Marked completed manually"}
    source.processing_status = status
    source.processing_error = None
    await session.flush()
    logger.info("Source %s status reset to %s", source_id, status)
    return source


async def update_source_fields(
    session: AsyncSession,
    source_id: UUID,
    user_id: str,
    name: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> Source:
    """Edit the display name or merge metadata keys."""
    source = await get_source(session, source_id, user_id)
    if name is not None:
        source.name = name
    if metadata is not None:
        source.metadata_ = {**(source.metadata_ or {}), **metadata}
    await session.flush()
    return source


async def delete_source(session: AsyncSession, source_id: UUID, user_id: str) -> None:
    """Delete a source; its chunks go with it via ON DELETE CASCADE."""
    result = await session.execute(
        delete(Source).where(Source.id == source_id, Source.user_id == user_id)
    )
    if result.rowcount == 0:
        raise SourceNotFoundError(f"Source {source_id} not found")
    logger.info("Deleted source %s", source_id)

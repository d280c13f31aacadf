"""Chunk embeddings in pgvector: indexing and cosine similarity search."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from consultantos.config import get_settings
from consultantos.processing.chunker import chunk_content
from consultantos.processing.embeddings import embed_query, embed_texts
from consultantos.storage.models import Source, SourceChunk

logger = logging.getLogger(__name__)


async def count_source_chunks(session: AsyncSession, source_id: UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(SourceChunk).where(SourceChunk.source_id == source_id)
    )
    return result.scalar_one()


async def get_source_chunks(session: AsyncSession, source_id: UUID, user_id: str) -> list[SourceChunk]:
    """All chunks of a source in index order."""
    result = await session.execute(
        select(SourceChunk)
        .where(SourceChunk.source_id == source_id, SourceChunk.user_id == user_id)
        .order_by(SourceChunk.chunk_index)
    )
    return list(result.scalars().all())


async def delete_source_chunks(session: AsyncSession, source_id: UUID) -> int:
    result = await session.execute(delete(SourceChunk).where(SourceChunk.source_id == source_id))
    return result.rowcount


async def process_source_embeddings(
    session: AsyncSession,
    source_id: UUID,
    client_id: Optional[UUID],
    user_id: str,
    force_regenerate: bool,
    content: str,
    metadata: Optional[dict] = None,
) -> int:
    """Chunk, embed and store a source's content.

    Skips (returning 0) when chunks already exist and ``force_regenerate`` is
    false. Otherwise every chunk is embedded before the previous chunk set is
    replaced, so an embedding failure leaves existing chunks untouched.

    Returns:
        Number of chunks written.

    Raises:
        EmbeddingError: If the embedding provider fails.
    """
    existing = await count_source_chunks(session, source_id)
    if existing and not force_regenerate:
        logger.info("Source %s already has %d chunks, skipping embeddings", source_id, existing)
        return 0

    settings = get_settings()
    chunks = chunk_content(
        content,
        chunk_size=settings.ingestion.chunk_size,
        overlap=settings.ingestion.chunk_overlap,
    )
    vectors = await embed_texts([c.content for c in chunks]) if chunks else []

    if existing:
        await delete_source_chunks(session, source_id)

    rows = [
        SourceChunk(
            source_id=source_id,
            client_id=client_id,
            user_id=user_id,
            chunk_index=chunk.index,
            content=chunk.content,
            start_char=chunk.start_char,
            end_char=chunk.end_char,
            embedding=vector,
            metadata_=metadata,
        )
        for chunk, vector in zip(chunks, vectors)
    ]
    session.add_all(rows)
    await session.flush()

    logger.info("Stored %d chunks for source %s (replaced %d)", len(rows), source_id, existing)
    return len(rows)


async def search_similar_chunks(
    session: AsyncSession,
    query: str,
    user_id: str,
    *,
    client_id: Optional[UUID] = None,
    limit: int = 10,
    min_similarity: Optional[float] = None,
) -> list[dict]:
    """Find the chunks most similar to ``query``.

    Results are ordered by similarity, then newer source, then chunk index,
    so identical queries over an unchanged index return identical output.
    A blank query returns no results without calling the embedding API.
    """
    if not query or not query.strip():
        return []

    query_vector = await embed_query(query)
    distance = SourceChunk.embedding.cosine_distance(query_vector)

    stmt = (
        select(
            SourceChunk.id,
            SourceChunk.source_id,
            SourceChunk.chunk_index,
            SourceChunk.content,
            SourceChunk.metadata_.label("chunk_metadata"),
            Source.name.label("source_name"),
            Source.type.label("source_type"),
            distance.label("distance"),
        )
        .join(Source, Source.id == SourceChunk.source_id)
        .where(SourceChunk.user_id == user_id, SourceChunk.embedding.is_not(None))
    )
    if client_id is not None:
        stmt = stmt.where(SourceChunk.client_id == client_id)
    if min_similarity is not None:
        stmt = stmt.where(distance <= 1 - min_similarity)

    stmt = stmt.order_by(
        distance.asc(),
        Source.created_at.desc(),
        SourceChunk.chunk_index.asc(),
    ).limit(limit)

    result = await session.execute(stmt)

    results = []
    for row in result.all():
        results.append({
            "chunkId": str(row.id),
            "sourceId": str(row.source_id),
            "sourceName": row.source_name,
            "sourceType": row.source_type,
            "chunkIndex": row.chunk_index,
            "content": row.content,
            "metadata": row.chunk_metadata,
            "similarity": round(1 - float(row.distance), 4),
        })

    logger.debug("Similarity search returned %d chunks for user %s", len(results), user_id)
    return results


def build_context_from_chunks(results: list[dict]) -> str:
    """Format search results as a context block for a chat prompt."""
    if not results:
        return ""

    parts = [
        f"[Source: {r['sourceName']} ({r['sourceType']})]\n{r['content']}"
        for r in results
    ]
    return "## Relevant Context from Sources\n\n" + "\n\n---\n\n".join(parts)

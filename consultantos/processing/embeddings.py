"""OpenAI embeddings generation with batching and dimension validation."""

import logging

from openai import AsyncOpenAI

from consultantos.config import get_settings

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """The embedding provider failed or returned unusable vectors."""


def _get_client() -> AsyncOpenAI:
    settings = get_settings()
    if not settings.embeddings.api_key:
        raise EmbeddingError("No OpenAI API key configured")
    return AsyncOpenAI(
        api_key=settings.embeddings.api_key,
        timeout=settings.embeddings.timeout_seconds,
    )


async def embed_texts(texts: list[str]) -> list[list[float]]:
    """Generate embeddings for a list of texts, preserving order.

    Texts are sent in batches of ``embeddings.batch_size``.

    Raises:
        EmbeddingError: If the API call fails or a vector has the wrong dimension.
    """
    if not texts:
        return []

    settings = get_settings()
    model = settings.embeddings.embedding_model
    expected_dim = settings.embeddings.embedding_dim
    batch_size = settings.embeddings.batch_size
    client = _get_client()

    embeddings: list[list[float]] = []
    for offset in range(0, len(texts), batch_size):
        batch = texts[offset:offset + batch_size]
        try:
            response = await client.embeddings.create(model=model, input=batch)
        except Exception as e:
            logger.error("Embedding request failed for batch at %d: %s", offset, e)
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        for item in sorted(response.data, key=lambda d: d.index):
            if len(item.embedding) != expected_dim:
                raise EmbeddingError(
                    f"Embedding dimension mismatch for text {offset + item.index}: "
                    f"expected {expected_dim}, got {len(item.embedding)}"
                )
            embeddings.append(item.embedding)

    if len(embeddings) != len(texts):
        raise EmbeddingError(f"Expected {len(texts)} embeddings, got {len(embeddings)}")

    logger.info("Generated %d embeddings using %s", len(embeddings), model)
    return embeddings


async def embed_query(text: str) -> list[float]:
    """Embed a single search query with the indexing model."""
    vectors = await embed_texts([text])
    return vectors[0]

"""OpenAI embeddings generation with validation."""

import asyncio

from openai import OpenAI

from app.core.config import Settings
from app.core.errors import EmbeddingGenerationFailed
from app.core.logging import get_logger

logger = get_logger(__name__)


def embed_texts(client: OpenAI, texts: list[str], settings: Settings) -> list[list[float]]:
    """
    Generate embeddings for a list of texts using OpenAI.

    Args:
        client: OpenAI client
        texts: List of text strings to embed
        settings: Settings carrying EMBEDDING_MODEL and EMBEDDING_DIM

    Returns:
        List of embedding vectors (each vector is list of floats)

    Raises:
        EmbeddingGenerationFailed: If the API call fails or a dimension mismatches
    """
    if not texts:
        return []

    try:
        response = client.embeddings.create(
            model=settings.EMBEDDING_MODEL,
            input=texts,
        )
    except Exception as e:
        logger.error(f"Failed to generate embeddings: {e}")
        raise EmbeddingGenerationFailed(str(e), provider="openai") from e

    embeddings = []
    for i, embedding_obj in enumerate(response.data):
        embedding = embedding_obj.embedding

        if len(embedding) != settings.EMBEDDING_DIM:
            raise EmbeddingGenerationFailed(
                f"Embedding dimension mismatch for text {i}: "
                f"expected {settings.EMBEDDING_DIM}, got {len(embedding)}",
                provider="openai",
            )

        embeddings.append(embedding)

    logger.info(
        f"Generated {len(embeddings)} embeddings using {settings.EMBEDDING_MODEL}",
        extra={"model": settings.EMBEDDING_MODEL, "count": len(embeddings)},
    )

    return embeddings


async def embed_texts_async(
    client: OpenAI, texts: list[str], settings: Settings
) -> list[list[float]]:
    """Async wrapper around embed_texts using thread pool."""
    return await asyncio.to_thread(embed_texts, client, texts, settings)

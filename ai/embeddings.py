"""Embedding service for curriculum and blog reference text.

Uses the OpenAI embeddings endpoint by default. A local sentence-transformers
backend is available for offline indexing; it is imported only when
selected.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterable

import numpy as np
import openai
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from be.config import EmbeddingBackend, settings

from .llm import TRANSIENT_ERRORS, LLMError, get_client

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when embedding computation fails."""
    pass


@lru_cache(maxsize=1)
def _load_local_model():
    """Load and cache the sentence transformer model.

    Raises:
        EmbeddingError: If the model or its libraries cannot be loaded
    """
    try:
        from sentence_transformers import SentenceTransformer

        logger.info(
            f"Loading embedding model: {settings.embeddings.model_name} "
            f"on device: {settings.embeddings.device}"
        )
        model = SentenceTransformer(
            settings.embeddings.model_name,
            device=settings.embeddings.device,
        )
        logger.info(f"Model loaded successfully. Embedding dim: {settings.embeddings.dim}")
        return model
    except Exception as e:
        logger.error(f"Failed to load embedding model: {e}")
        raise EmbeddingError(f"Model loading failed: {e}") from e


@retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)
async def _embed_remote(texts: list[str]) -> list[list[float]]:
    client = get_client()
    response = await client.embeddings.create(
        model=settings.embeddings.model_name,
        input=texts,
    )
    ordered = sorted(response.data, key=lambda d: d.index)
    return [list(d.embedding) for d in ordered]


def _embed_local(texts: list[str]) -> list[list[float]]:
    model = _load_local_model()
    vectors = model.encode(
        texts,
        batch_size=settings.embeddings.batch_size,
        show_progress_bar=False,
        convert_to_numpy=True,
        normalize_embeddings=settings.embeddings.normalize_embeddings,
    )
    return vectors.tolist()


def _check_dimensions(vectors: list[list[float]]) -> list[list[float]]:
    matrix = np.asarray(vectors, dtype=np.float32)
    if matrix.ndim != 2 or matrix.shape[1] != settings.embeddings.dim:
        raise EmbeddingError(
            f"Expected embeddings of dim {settings.embeddings.dim}, got shape {matrix.shape}"
        )
    return matrix.tolist()


async def embed_texts(texts: list[str] | Iterable[str]) -> list[list[float]]:
    """Compute embeddings for a batch of texts.

    Empty strings get a zero vector so the output stays aligned with the
    input.

    Args:
        texts: List or iterable of text strings to embed

    Returns:
        List of embedding vectors (each is a list of floats)

    Raises:
        EmbeddingError: If embedding computation fails after retries
        ValueError: If texts contains non-string items
    """
    text_list = list(texts)
    if not text_list:
        logger.warning("Empty text list provided to embed_texts")
        return []
    if not all(isinstance(t, str) for t in text_list):
        raise ValueError("All items in texts must be strings")

    positions = [i for i, t in enumerate(text_list) if t.strip()]
    result = [[0.0] * settings.embeddings.dim for _ in text_list]
    if not positions:
        logger.warning("All texts are empty after filtering")
        return result

    valid_texts = [text_list[i] for i in positions]
    try:
        if settings.embeddings.backend == EmbeddingBackend.LOCAL:
            vectors = _embed_local(valid_texts)
        else:
            vectors = await _embed_remote(valid_texts)
        vectors = _check_dimensions(vectors)
    except EmbeddingError:
        raise
    except (LLMError, openai.OpenAIError) as e:
        logger.error(f"Embedding computation failed: {e}")
        raise EmbeddingError(f"Failed to compute embeddings: {e}") from e

    for pos, vector in zip(positions, vectors):
        result[pos] = vector
    logger.debug(f"Successfully encoded {len(vectors)} embeddings")
    return result


async def embed_single(text: str) -> list[float]:
    """Convenience function to embed a single text."""
    if not text or not text.strip():
        return [0.0] * settings.embeddings.dim

    embeddings = await embed_texts([text])
    return embeddings[0]

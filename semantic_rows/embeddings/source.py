"""
Embedding source interface and batch embedding helper.

Engines never call an embedding model themselves; they take vectors. Analysis
code gets its vectors from any object implementing EmbeddingSource.
"""

import logging
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from semantic_rows.similarity.cosine import validate_embedding

logger = logging.getLogger(__name__)


class EmbeddingSource(Protocol):
    """Anything that can turn one text into one embedding vector."""

    async def embed(self, text: str) -> List[float]:
        ...


async def embed_texts(
    source: EmbeddingSource,
    texts: Sequence[str],
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> Tuple[List[int], List[List[float]]]:
    """
    Embed texts one at a time, skipping empty ones.

    Args:
        source: Embedding source
        texts: Texts to embed, one per row
        on_progress: Called with (current, total) after each embedded text

    Returns:
        (row_indices, embeddings): the positions in texts that were embedded,
        and their embeddings in the same order
    """
    row_indices = []
    embeddings = []
    total = len(texts)

    for index, text in enumerate(texts):
        if not text or not text.strip():
            continue
        embedding = await source.embed(text)
        if not validate_embedding(embedding):
            raise ValueError(f"Embedding source returned an invalid vector for row {index}")
        embeddings.append(list(embedding))
        row_indices.append(index)
        if on_progress:
            on_progress(index + 1, total)

    skipped = total - len(row_indices)
    if skipped:
        logger.info(f"Skipped {skipped} empty texts out of {total}")
    return row_indices, embeddings

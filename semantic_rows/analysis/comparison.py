"""
Row comparison: embed the selected columns of every row and rank all row
pairs by cosine similarity.

Progress runs 0-70% while embedding and 70-100% while ranking.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from semantic_rows.analysis.rows import PhaseProgressCallback, Row, build_row_texts, report_phase
from semantic_rows.compute import BackendSelector
from semantic_rows.constants import COMPARISON_EMBEDDING_SHARE
from semantic_rows.embeddings import EmbeddingSource, embed_texts
from semantic_rows.similarity import SimilarityPair, all_pairs

logger = logging.getLogger(__name__)


@dataclass
class ComparisonResult:
    """Ranked row pairs plus the embeddings they were computed from."""

    pairs: List[SimilarityPair]  # Row indices refer to the input rows
    embeddings: Dict[int, List[float]] = field(default_factory=dict)  # Row index -> embedding


async def compare_rows(
    rows: Sequence[Row],
    columns: Sequence[str],
    source: EmbeddingSource,
    on_progress: Optional[PhaseProgressCallback] = None,
    selector: Optional[BackendSelector] = None,
) -> ComparisonResult:
    """
    Rank every pair of rows by the similarity of their selected columns.

    Rows whose selected columns are all empty are not embedded and appear in
    no pair.

    Args:
        rows: Table rows
        columns: Columns whose text is compared
        source: Embedding source
        on_progress: Called with (percent, phase)
        selector: Backend selector for the similarity engine

    Returns:
        ComparisonResult with pairs sorted by score descending
    """
    if not columns:
        raise ValueError("At least one comparison column is required")

    texts = build_row_texts(rows, columns)
    row_indices, embeddings = await embed_texts(
        source,
        texts,
        lambda current, total: report_phase(
            on_progress, current / total * COMPARISON_EMBEDDING_SHARE, "embeddings"
        ),
    )

    similarity_share = 100 - COMPARISON_EMBEDDING_SHARE
    pairs = await all_pairs(
        embeddings,
        lambda current, total: report_phase(
            on_progress,
            COMPARISON_EMBEDDING_SHARE + current / total * similarity_share,
            "similarity",
        ),
        selector=selector,
    )

    pairs = [
        SimilarityPair(
            index_a=row_indices[pair.index_a],
            index_b=row_indices[pair.index_b],
            score=pair.score,
        )
        for pair in pairs
    ]
    logger.info(
        f"Compared {len(row_indices)} rows into {len(pairs)} pairs",
        extra={"operation": "compare_rows", "count": len(pairs)},
    )
    return ComparisonResult(pairs=pairs, embeddings=dict(zip(row_indices, embeddings)))

"""
All-pairs cosine similarity ranking.

Pairs are enumerated in row-major triangular order: for i in 0..N-2, for j in
i+1..N-1. The linear pair index p in [0, N(N-1)/2) maps to (i, j) by taking
successive row widths (N-1), (N-2), ... off p until it fits in the current
row. The parallel backend gives each unit one p and recovers (i, j) from it
alone, so every unit writes a distinct output slot.

Both backends rank by score descending with ties kept in pair-index order,
so the output order does not depend on the backend that produced it.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from semantic_rows.compute import BackendSelector, ComputeContext, get_default_selector
from semantic_rows.constants import DEFAULT_MAX_DISPLAY_PAIRS, SCORE_ROUNDING_TOLERANCE
from semantic_rows.errors import DispatchFailure
from semantic_rows.similarity.cosine import (
    Vector,
    as_vector_matrix,
    row_norm_kernel,
    row_norms,
    safe_divide,
    validate_similarity_score,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class SimilarityPair:
    """Similarity between two rows, index_a < index_b."""

    index_a: int
    index_b: int
    score: float


def pair_count(n: int) -> int:
    """Number of unordered pairs among n items."""
    return n * (n - 1) // 2 if n > 1 else 0


def pair_index_to_rows(pair_index: int, n: int) -> Tuple[int, int]:
    """
    Map a linear pair index to its (i, j) row pair.

    Args:
        pair_index: Index in [0, n(n-1)/2)
        n: Number of rows

    Returns:
        (i, j) with i < j
    """
    if not 0 <= pair_index < pair_count(n):
        raise IndexError(f"Pair index {pair_index} out of range for {n} rows")

    remaining = pair_index
    row_width = n - 1
    row = 0
    while remaining >= row_width:
        remaining -= row_width
        row_width -= 1
        row += 1
    return row, row + remaining + 1


def row_start_offsets(n: int) -> NDArray[np.int64]:
    """Linear pair index of the first pair in each row 0..n-2."""
    rows = np.arange(max(n - 1, 0), dtype=np.int64)
    return rows * (2 * n - rows - 1) // 2


def pair_indices_to_rows(
    pair_indices: NDArray[np.integer], n: int
) -> Tuple[NDArray[np.int64], NDArray[np.int64]]:
    """
    Vectorised pair_index_to_rows for a block of pair indices.

    Args:
        pair_indices: Array of linear pair indices
        n: Number of rows

    Returns:
        (rows, cols) arrays, rows[k] < cols[k]
    """
    pair_indices = np.asarray(pair_indices, dtype=np.int64)
    offsets = row_start_offsets(n)
    rows = np.searchsorted(offsets, pair_indices, side="right") - 1
    cols = rows + (pair_indices - offsets[rows]) + 1
    return rows, cols


def rank_pairs(scores: NDArray[np.floating], n: int) -> List[SimilarityPair]:
    """
    Turn a linear score array into SimilarityPairs sorted by score descending.

    Equal scores keep their pair-index order.
    """
    order = np.argsort(-scores, kind="stable")
    rows, cols = pair_indices_to_rows(order, n)
    return [
        SimilarityPair(index_a=int(i), index_b=int(j), score=float(scores[p]))
        for p, i, j in zip(order, rows, cols)
    ]


def all_pairs_cpu(
    matrix: NDArray[np.floating],
    on_progress: Optional[ProgressCallback] = None,
) -> List[SimilarityPair]:
    """
    Rank all pairs sequentially, one row of the triangle at a time.

    Args:
        matrix: (N, dim) vector matrix
        on_progress: Called with (processed, total) after each row

    Returns:
        Pairs sorted by score descending
    """
    n, dim = matrix.shape
    total = pair_count(n)
    if total == 0 or dim == 0:
        return []

    norms = row_norms(matrix)
    scores = np.empty(total, dtype=np.float64)
    processed = 0

    # Same arithmetic as the parallel units, so exact ties rank identically
    for i in range(n - 1):
        width = n - 1 - i
        pair_similarity_kernel(processed, processed + width, matrix, norms, scores, n)
        processed += width
        if on_progress:
            on_progress(processed, total)

    return rank_pairs(scores, n)


def pair_similarities(matrix: NDArray[np.floating]) -> NDArray[np.float64]:
    """Cosine similarity of every row pair, in linear pair order."""
    n = len(matrix)
    scores = np.empty(pair_count(n), dtype=np.float64)
    if len(scores):
        pair_similarity_kernel(0, len(scores), matrix, row_norms(matrix), scores, n)
    return scores


def check_readback_scores(scores: NDArray[np.floating]) -> NDArray[np.floating]:
    """
    Reject a score readback holding values no cosine can take.

    Raises:
        DispatchFailure: If any score is NaN, infinite, or outside [-1, 1]
    """
    if len(scores) == 0:
        return scores
    for extreme in (scores.min(), scores.max()):
        if not validate_similarity_score(float(extreme), SCORE_ROUNDING_TOLERANCE):
            raise DispatchFailure(f"Parallel readback returned invalid score {extreme}")
    return scores


def pair_similarity_kernel(
    start: int,
    stop: int,
    vectors: np.ndarray,
    norms: np.ndarray,
    scores: np.ndarray,
    n: int,
) -> None:
    """Parallel unit body: score linear pairs [start, stop) of an n-row triangle."""
    rows, cols = pair_indices_to_rows(np.arange(start, stop, dtype=np.int64), n)
    dots = np.einsum("ij,ij->i", vectors[rows], vectors[cols])
    scores[start:stop] = safe_divide(dots, norms[rows] * norms[cols])


async def all_pairs_parallel(
    context: ComputeContext,
    matrix: NDArray[np.floating],
    on_progress: Optional[ProgressCallback] = None,
) -> List[SimilarityPair]:
    """
    Rank all pairs on the parallel backend, one unit per pair.

    Progress is reported once, on completion.
    """
    n, dim = matrix.shape
    total = pair_count(n)
    if total == 0 or dim == 0:
        return []

    with context.buffer((n, dim), data=matrix) as vectors:
        with context.buffer(n) as norms, context.buffer(total) as scores:
            await context.dispatch(row_norm_kernel, n, vectors.array, norms.array)
            await context.dispatch(
                pair_similarity_kernel, total, vectors.array, norms.array, scores.array, n
            )
            result = check_readback_scores(scores.read())

    if on_progress:
        on_progress(total, total)

    return rank_pairs(result, n)


async def all_pairs(
    vectors: Sequence[Vector],
    on_progress: Optional[ProgressCallback] = None,
    selector: Optional[BackendSelector] = None,
) -> List[SimilarityPair]:
    """
    Compute cosine similarity for every unordered pair of vectors.

    Args:
        vectors: Vector set (row index = position)
        on_progress: Optional (processed, total) callback
        selector: Backend selector (default: process-wide selector)

    Returns:
        N(N-1)/2 pairs sorted by score descending

    Raises:
        DimensionMismatch: If vectors differ in length
    """
    matrix = as_vector_matrix(vectors)
    n, dim = matrix.shape
    if pair_count(n) == 0 or dim == 0:
        return []

    logger.info(f"Computing {pair_count(n)} pairwise similarities for {n} vectors (dim={dim})")

    async def run_cpu() -> List[SimilarityPair]:
        return all_pairs_cpu(matrix, on_progress)

    selector = selector or get_default_selector()
    return await selector.run(
        "all_pairs",
        lambda context: all_pairs_parallel(context, matrix, on_progress),
        run_cpu,
    )


def top_k_pairs(
    pairs: Sequence[SimilarityPair],
    top_k: int = DEFAULT_MAX_DISPLAY_PAIRS,
    similarity_threshold: Optional[float] = None,
) -> List[SimilarityPair]:
    """
    Trim a ranked pair list for display.

    Args:
        pairs: Pairs sorted by score descending
        top_k: Maximum pairs to keep
        similarity_threshold: Minimum score (None keeps all)

    Returns:
        Leading pairs, in their original order
    """
    if similarity_threshold is not None:
        pairs = [pair for pair in pairs if pair.score >= similarity_threshold]
    return list(pairs[:top_k])

"""
Agglomerative clustering over cosine similarity.

Starts with one cluster per row and repeatedly merges the most similar pair
of centroids until k clusters remain. Centroid pair similarities are laid
out in the same row-major triangular order as all-pairs ranking, and the
first maximum in that order wins, so both backends make the same merges.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from semantic_rows.clustering.models import (
    CancellationToken,
    Cluster,
    FractionCallback,
    freeze_clusters,
    mean_centroid,
    monotonic_progress,
    validate_cluster_count,
)
from semantic_rows.compute import BackendSelector, ComputeContext, get_default_selector
from semantic_rows.similarity.cosine import (
    Vector,
    as_vector_matrix,
    normalize,
    row_norm_kernel,
)
from semantic_rows.similarity.pairs import (
    check_readback_scores,
    pair_count,
    pair_index_to_rows,
    pair_similarities,
    pair_similarity_kernel,
)

logger = logging.getLogger(__name__)

PairSimilarityFn = Callable[[NDArray[np.floating]], Awaitable[NDArray[np.floating]]]


@dataclass
class _WorkingCluster:
    members: List[int]
    centroid: NDArray[np.float64]


def centroid_pair_similarities(centroids: NDArray[np.floating]) -> NDArray[np.float64]:
    """Cosine similarity of every centroid pair, in linear pair order."""
    return pair_similarities(np.asarray(centroids, dtype=np.float64))


async def centroid_pair_similarities_parallel(
    context: ComputeContext, centroids: NDArray[np.floating]
) -> NDArray[np.floating]:
    """Centroid pair similarities computed one parallel unit per pair."""
    count, dim = centroids.shape
    total = pair_count(count)
    with context.buffer((count, dim), data=centroids) as vectors:
        with context.buffer(count) as norms, context.buffer(total) as scores:
            await context.dispatch(row_norm_kernel, count, vectors.array, norms.array)
            await context.dispatch(
                pair_similarity_kernel, total, vectors.array, norms.array, scores.array, count
            )
            return check_readback_scores(scores.read())


async def agglomerate(
    matrix: NDArray[np.floating],
    k: int,
    score_pairs: PairSimilarityFn,
    on_progress: Optional[FractionCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> List[_WorkingCluster]:
    """
    Merge clusters until at most k remain.

    Args:
        matrix: (N, dim) vectors
        k: Target cluster count
        score_pairs: Coroutine returning centroid pair scores in linear pair order
        on_progress: Called with the fraction of required merges done
        cancel_token: Checked before each merge

    Returns:
        Remaining working clusters in active-list order
    """
    clusters = [
        _WorkingCluster(members=[row], centroid=np.array(matrix[row], dtype=np.float64))
        for row in range(len(matrix))
    ]
    initial = len(clusters)

    while len(clusters) > k:
        if cancel_token:
            cancel_token.raise_if_cancelled("hierarchical clustering")

        centroids = np.stack([cluster.centroid for cluster in clusters])
        scores = await score_pairs(centroids)
        i, j = pair_index_to_rows(int(np.argmax(scores)), len(clusters))

        target = clusters[i]
        target.members = target.members + clusters[j].members
        target.centroid = mean_centroid(matrix, target.members)
        # j > i, so removing j leaves the target's position unchanged
        del clusters[j]

        if on_progress:
            on_progress((initial - len(clusters)) / (initial - k))

    return clusters


async def hierarchical_cluster(
    vectors: Sequence[Vector],
    k: int,
    on_progress: Optional[FractionCallback] = None,
    selector: Optional[BackendSelector] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> List[Cluster]:
    """
    Cluster vectors by repeatedly merging the most similar pair of clusters.

    Args:
        vectors: Vector set (row index = position)
        k: Number of clusters to stop at (>= 1)
        on_progress: Called with (initial - current) / (initial - k) after each merge
        selector: Backend selector (default: process-wide selector)
        cancel_token: Optional cooperative cancellation

    Returns:
        Clusters sorted by member count descending, like k-means output.
        Merging itself leaves them in active-list order (first row first);
        the size sort replaces that order.

    Raises:
        InvalidClusterCount: If k <= 0
        DimensionMismatch: If vectors differ in length
    """
    k = validate_cluster_count(k)
    matrix = as_vector_matrix(vectors)
    n, dim = matrix.shape
    if n == 0 or dim == 0:
        return []

    on_progress = monotonic_progress(on_progress)
    logger.info(f"Running hierarchical clustering with k={k} on {n} vectors (dim={dim})")

    async def run_cpu() -> List[_WorkingCluster]:
        async def cpu_similarities(centroids):
            return centroid_pair_similarities(centroids)

        return await agglomerate(matrix, k, cpu_similarities, on_progress, cancel_token)

    async def run_parallel(context: ComputeContext) -> List[_WorkingCluster]:
        async def parallel_similarities(centroids):
            return await centroid_pair_similarities_parallel(context, centroids)

        return await agglomerate(matrix, k, parallel_similarities, on_progress, cancel_token)

    selector = selector or get_default_selector()
    clusters = await selector.run("hierarchical", run_parallel, run_cpu)

    logger.info(
        f"Hierarchical clustering finished with {len(clusters)} clusters",
        extra={"operation": "hierarchical", "count": len(clusters)},
    )
    # Unmerged singletons still carry their raw row vector
    return freeze_clusters(
        matrix, [(cluster.members, normalize(cluster.centroid)) for cluster in clusters]
    )

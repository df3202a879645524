"""
K-means clustering over cosine similarity.

Each iteration assigns every row to its most similar centroid (lowest
centroid id on ties), stops if the assignment array is exactly unchanged,
and otherwise recomputes each non-empty cluster's centroid as the normalised
mean of its members. Empty clusters keep their previous centroid.

Only the assignment step differs between backends; the centroid update
always runs on the host.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from semantic_rows.clustering.models import (
    CancellationToken,
    Cluster,
    FractionCallback,
    KMeansRun,
    freeze_clusters,
    mean_centroid,
    monotonic_progress,
    validate_cluster_count,
)
from semantic_rows.compute import BackendSelector, ComputeContext, get_default_selector
from semantic_rows.constants import MAX_KMEANS_ITERATIONS
from semantic_rows.similarity.cosine import (
    Vector,
    as_vector_matrix,
    row_norm_kernel,
    row_norms,
    safe_divide,
)

logger = logging.getLogger(__name__)

# Placeholder assignment before the first iteration; never a real cluster id
UNASSIGNED = -1


def choose_seed_indices(n: int, k: int, rng: np.random.Generator) -> NDArray[np.int64]:
    """
    Pick min(k, n) distinct rows uniformly at random as initial centroids.

    Args:
        n: Number of rows
        k: Requested cluster count
        rng: Random source (anything with numpy Generator.choice semantics)

    Returns:
        Seed row indices, in draw order
    """
    count = min(k, n)
    return np.asarray(rng.choice(n, size=count, replace=False), dtype=np.int64)


def assignment_kernel(
    start: int,
    stop: int,
    points: np.ndarray,
    point_norms: np.ndarray,
    centroids: np.ndarray,
    centroid_norms: np.ndarray,
    assignments: np.ndarray,
) -> None:
    """Parallel unit body: assign rows [start, stop) to their most similar centroid."""
    dots = np.einsum("ij,kj->ik", points[start:stop], centroids)
    similarities = safe_divide(dots, np.outer(point_norms[start:stop], centroid_norms))
    assignments[start:stop] = np.argmax(similarities, axis=1)


def assign_rows(matrix: NDArray[np.floating], centroids: NDArray[np.floating]) -> NDArray[np.int64]:
    """Index of the most similar centroid for every row (first one on ties)."""
    assignments = np.empty(len(matrix), dtype=np.int64)
    if len(matrix):
        assignment_kernel(
            0, len(matrix), matrix, row_norms(matrix), centroids, row_norms(centroids), assignments
        )
    return assignments


def update_centroids(
    matrix: NDArray[np.floating],
    assignments: NDArray[np.int64],
    centroids: NDArray[np.floating],
) -> NDArray[np.float64]:
    """
    Recompute centroids from the current assignment.

    Returns:
        New (k, dim) centroid array; clusters without members keep their centroid
    """
    updated = np.array(centroids, dtype=np.float64, copy=True)
    for cluster_id in range(len(updated)):
        members = np.flatnonzero(assignments == cluster_id)
        if len(members) > 0:
            updated[cluster_id] = mean_centroid(matrix, members)
    return updated


def _finish_iteration(
    iteration: int,
    max_iterations: int,
    on_progress: Optional[FractionCallback],
) -> None:
    if on_progress:
        on_progress(iteration / max_iterations)


def run_kmeans_cpu(
    matrix: NDArray[np.floating],
    initial_centroids: NDArray[np.floating],
    max_iterations: int = MAX_KMEANS_ITERATIONS,
    on_progress: Optional[FractionCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> KMeansRun:
    """
    Run the k-means iteration on the host.

    Args:
        matrix: (N, dim) vectors
        initial_centroids: (k, dim) starting centroids, copied
        max_iterations: Iteration bound
        on_progress: Called with iteration / max_iterations after each iteration
        cancel_token: Checked before each iteration

    Returns:
        KMeansRun with final assignments and centroids
    """
    centroids = np.array(initial_centroids, dtype=np.float64, copy=True)
    assignments = np.full(len(matrix), UNASSIGNED, dtype=np.int64)
    converged = False
    iteration = 0

    while iteration < max_iterations:
        if cancel_token:
            cancel_token.raise_if_cancelled("k-means")

        new_assignments = assign_rows(matrix, centroids)
        iteration += 1

        converged = np.array_equal(new_assignments, assignments)
        assignments = new_assignments
        if not converged:
            centroids = update_centroids(matrix, assignments, centroids)

        _finish_iteration(iteration, max_iterations, on_progress)
        if converged:
            break

    return KMeansRun(
        assignments=assignments, centroids=centroids, iterations=iteration, converged=converged
    )


async def run_kmeans_parallel(
    context: ComputeContext,
    matrix: NDArray[np.floating],
    initial_centroids: NDArray[np.floating],
    max_iterations: int = MAX_KMEANS_ITERATIONS,
    on_progress: Optional[FractionCallback] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> KMeansRun:
    """
    Run the k-means iteration with assignment dispatched one unit per row.

    The points buffer lives for the whole call and the centroid buffer is
    re-written every iteration; the assignment buffer is acquired per
    dispatch and released right after readback.
    """
    n, dim = matrix.shape
    centroids = np.array(initial_centroids, dtype=np.float64, copy=True)
    k = len(centroids)
    assignments = np.full(n, UNASSIGNED, dtype=np.int64)
    converged = False
    iteration = 0

    with context.buffer((n, dim), data=matrix) as points, context.buffer(n) as point_norms:
        with context.buffer((k, dim)) as centroid_buffer, context.buffer(k) as centroid_norms:
            await context.dispatch(row_norm_kernel, n, points.array, point_norms.array)

            while iteration < max_iterations:
                if cancel_token:
                    cancel_token.raise_if_cancelled("k-means")

                centroid_buffer.write(centroids)
                centroid_norms.write(row_norms(centroid_buffer.array))

                with context.buffer(n, dtype=np.int64) as assignment_buffer:
                    await context.dispatch(
                        assignment_kernel,
                        n,
                        points.array,
                        point_norms.array,
                        centroid_buffer.array,
                        centroid_norms.array,
                        assignment_buffer.array,
                    )
                    new_assignments = assignment_buffer.read()
                iteration += 1

                converged = np.array_equal(new_assignments, assignments)
                assignments = new_assignments
                if not converged:
                    centroids = update_centroids(matrix, assignments, centroids)

                _finish_iteration(iteration, max_iterations, on_progress)
                if converged:
                    break

    return KMeansRun(
        assignments=assignments, centroids=centroids, iterations=iteration, converged=converged
    )


def build_clusters(matrix: NDArray[np.floating], run: KMeansRun) -> List[Cluster]:
    """Frozen clusters for every non-empty cluster id, largest first."""
    groups = []
    for cluster_id in range(len(run.centroids)):
        members = np.flatnonzero(run.assignments == cluster_id)
        if len(members) > 0:
            groups.append((members.tolist(), run.centroids[cluster_id]))
    return freeze_clusters(matrix, groups)


async def kmeans_cluster(
    vectors: Sequence[Vector],
    k: int,
    on_progress: Optional[FractionCallback] = None,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
    selector: Optional[BackendSelector] = None,
    max_iterations: int = MAX_KMEANS_ITERATIONS,
    cancel_token: Optional[CancellationToken] = None,
) -> List[Cluster]:
    """
    Cluster vectors with k-means over cosine similarity.

    Args:
        vectors: Vector set (row index = position)
        k: Number of clusters (>= 1); more than N yields at most N clusters
        on_progress: Called with the fraction of the iteration bound used
        rng: Random source for seeding (takes precedence over seed)
        seed: Seed for a fresh numpy Generator when rng is not given
        selector: Backend selector (default: process-wide selector)
        max_iterations: Iteration bound
        cancel_token: Optional cooperative cancellation

    Returns:
        Non-empty clusters sorted by member count descending

    Raises:
        InvalidClusterCount: If k <= 0
        DimensionMismatch: If vectors differ in length
    """
    k = validate_cluster_count(k)
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

    matrix = as_vector_matrix(vectors)
    n, dim = matrix.shape
    if n == 0 or dim == 0:
        return []

    on_progress = monotonic_progress(on_progress)
    # Seeds are drawn once so a CPU fallback starts from the same centroids
    seeds = choose_seed_indices(n, k, rng if rng is not None else np.random.default_rng(seed))
    initial_centroids = matrix[seeds]
    logger.info(f"Running k-means with k={k} on {n} vectors (dim={dim})")

    async def run_cpu() -> KMeansRun:
        return run_kmeans_cpu(matrix, initial_centroids, max_iterations, on_progress, cancel_token)

    selector = selector or get_default_selector()
    run = await selector.run(
        "kmeans",
        lambda context: run_kmeans_parallel(
            context, matrix, initial_centroids, max_iterations, on_progress, cancel_token
        ),
        run_cpu,
    )

    logger.info(
        f"K-means finished after {run.iterations} iterations (converged={run.converged})",
        extra={"operation": "kmeans", "count": run.iterations},
    )
    return build_clusters(matrix, run)

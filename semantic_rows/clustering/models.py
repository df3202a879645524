"""
Data models for clustering results.

Clusters are built fresh for every run and frozen once returned.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from semantic_rows.errors import InvalidClusterCount, OperationCancelled
from semantic_rows.similarity.cosine import normalize, similarities_to

FractionCallback = Callable[[float], None]


@dataclass(frozen=True, eq=False)
class Cluster:
    """A group of rows with a unit-length centroid."""

    centroid: NDArray[np.float64]  # Mean of member vectors, normalised
    members: FrozenSet[int]  # Row indices
    coherence: float  # Mean cosine similarity of members to centroid

    def __post_init__(self):
        self.centroid.setflags(write=False)

    @property
    def size(self) -> int:
        return len(self.members)

    def member_indices(self) -> List[int]:
        """Member row indices in ascending order."""
        return sorted(self.members)

    def to_dict(self) -> Dict:
        """Convert to dict for JSON serialization."""
        return {
            "centroid": [float(x) for x in self.centroid],
            "members": self.member_indices(),
            "coherence": self.coherence,
            "size": self.size,
        }


@dataclass(frozen=True, eq=False)
class KMeansRun:
    """Raw outcome of the iterative k-means phase."""

    assignments: NDArray[np.int64]  # Row index -> cluster id
    centroids: NDArray[np.float64]  # (k, dim), including empty clusters
    iterations: int
    converged: bool


class CancellationToken:
    """
    Cooperative cancellation flag, checked between clustering iterations.

    A single iteration is never interrupted; a cancelled run raises
    OperationCancelled and returns nothing.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str) -> None:
        if self._event.is_set():
            raise OperationCancelled(f"{operation} cancelled")


def monotonic_progress(on_progress: Optional[FractionCallback]) -> Optional[FractionCallback]:
    """
    Wrap a progress callback so reported fractions never decrease.

    A CPU fallback restarts the run from the beginning; its early reports
    are held back until they pass what the failed parallel attempt reached.
    """
    if on_progress is None:
        return None

    highest = [0.0]

    def report(fraction: float) -> None:
        if fraction > highest[0]:
            highest[0] = fraction
            on_progress(fraction)

    return report


def validate_cluster_count(k) -> int:
    """Reject non-positive (or non-integer) cluster counts before any work starts."""
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k <= 0:
        raise InvalidClusterCount(k)
    return int(k)


def mean_centroid(matrix: NDArray[np.floating], members: Sequence[int]) -> NDArray[np.float64]:
    """Mean of the member rows, normalised to unit length (zero mean left as is)."""
    return normalize(matrix[list(members)].mean(axis=0))


def cluster_coherence(
    matrix: NDArray[np.floating], members: Sequence[int], centroid: NDArray[np.floating]
) -> float:
    """Mean cosine similarity of the member rows to the centroid."""
    if len(members) == 0:
        return 0.0
    return float(np.mean(similarities_to(matrix[list(members)], np.asarray(centroid, dtype=np.float64))))


def freeze_clusters(
    matrix: NDArray[np.floating],
    groups: Iterable[Tuple[Sequence[int], NDArray[np.floating]]],
) -> List[Cluster]:
    """
    Build the frozen output clusters, largest first.

    Args:
        matrix: Original (N, dim) vectors, used for coherence
        groups: (members, centroid) per cluster, in cluster order

    Returns:
        Clusters sorted by member count descending; equal sizes keep cluster order
    """
    clusters = []
    for members, centroid in groups:
        centroid = np.array(centroid, dtype=np.float64, copy=True)
        clusters.append(
            Cluster(
                centroid=centroid,
                members=frozenset(int(m) for m in members),
                coherence=cluster_coherence(matrix, members, centroid),
            )
        )
    clusters.sort(key=lambda cluster: cluster.size, reverse=True)
    return clusters

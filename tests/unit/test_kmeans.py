"""
Unit tests for semantic_rows.clustering.kmeans module.
"""

import asyncio

import numpy as np
import pytest

from semantic_rows.clustering import CancellationToken, kmeans_cluster, run_kmeans_cpu
from semantic_rows.clustering.kmeans import assign_rows, choose_seed_indices, update_centroids
from semantic_rows.errors import DimensionMismatch, InvalidClusterCount, OperationCancelled


class FixedChoice:
    """Random source that always picks the given seed rows."""

    def __init__(self, indices):
        self.indices = indices

    def choice(self, n, size, replace):
        return np.array(self.indices[:size])


def blobs(seed=0, per_blob=8):
    """Three well separated groups of vectors."""
    rng = np.random.default_rng(seed)
    centers = np.array([[10.0, 0.0, 0.0], [0.0, 10.0, 0.0], [0.0, 0.0, 10.0]])
    return np.vstack([center + rng.normal(scale=0.5, size=(per_blob, 3)) for center in centers])


class TestHelpers:
    """Tests for the k-means building blocks."""

    def test_seed_indices_distinct(self):
        """Test that seeds are distinct rows."""
        seeds = choose_seed_indices(10, 4, np.random.default_rng(0))
        assert len(set(seeds.tolist())) == 4

    def test_seed_count_capped_at_n(self):
        """Test that k > n picks every row once."""
        seeds = choose_seed_indices(3, 5, np.random.default_rng(0))
        assert sorted(seeds.tolist()) == [0, 1, 2]

    def test_assign_ties_lowest_centroid(self):
        """Test that a row equally similar to two centroids goes to the lower id."""
        matrix = np.array([[1.0, 1.0]])
        centroids = np.array([[1.0, 0.0], [0.0, 1.0]])
        assert assign_rows(matrix, centroids).tolist() == [0]

    def test_update_keeps_empty_cluster_centroid(self):
        """Test that a cluster with no members keeps its centroid."""
        matrix = np.array([[2.0, 0.0], [4.0, 0.0]])
        centroids = np.array([[1.0, 0.0], [0.0, 1.0]])
        updated = update_centroids(matrix, np.array([0, 0]), centroids)
        assert updated[0] == pytest.approx([1.0, 0.0])
        assert updated[1].tolist() == [0.0, 1.0]

    def test_update_zero_mean_left_unnormalised(self):
        """Test that a zero mean centroid stays zero."""
        matrix = np.array([[1.0, 0.0], [-1.0, 0.0]])
        updated = update_centroids(matrix, np.array([0, 0]), np.array([[1.0, 0.0]]))
        assert updated[0].tolist() == [0.0, 0.0]


class TestKMeansCluster:
    """Tests for kmeans_cluster on each backend."""

    def test_scenario_two_clusters(self, selector):
        """Test the documented two-cluster scenario."""
        clusters = asyncio.run(
            kmeans_cluster([[1, 0], [1, 0], [0, 1]], 2, rng=FixedChoice([0, 2]), selector=selector)
        )
        assert len(clusters) == 2
        assert clusters[0].members == {0, 1}
        assert clusters[0].centroid == pytest.approx([1.0, 0.0])
        assert clusters[1].members == {2}
        assert clusters[1].centroid == pytest.approx([0.0, 1.0])
        assert clusters[0].coherence == pytest.approx(1.0)
        assert clusters[1].coherence == pytest.approx(1.0)

    def test_same_seed_same_membership(self, selector):
        """Test that a fixed seed reproduces the clustering."""
        vectors = np.random.default_rng(5).normal(size=(30, 4))
        first = asyncio.run(kmeans_cluster(vectors, 4, seed=42, selector=selector))
        second = asyncio.run(kmeans_cluster(vectors, 4, seed=42, selector=selector))
        assert [c.members for c in first] == [c.members for c in second]

    def test_every_row_in_one_cluster(self, selector):
        """Test that clusters partition the rows."""
        vectors = blobs()
        clusters = asyncio.run(kmeans_cluster(vectors, 3, seed=1, selector=selector))
        members = [m for c in clusters for m in c.members]
        assert len(clusters) <= 3
        assert sorted(members) == list(range(len(vectors)))

    def test_sorted_by_size(self, selector):
        """Test that clusters come largest first."""
        vectors = np.vstack([np.tile([1.0, 0.0], (5, 1)), np.tile([0.0, 1.0], (2, 1))])
        clusters = asyncio.run(kmeans_cluster(vectors, 2, rng=FixedChoice([0, 6]), selector=selector))
        assert [c.size for c in clusters] == [5, 2]

    def test_k_larger_than_n(self, selector):
        """Test that asking for more clusters than rows returns at most N."""
        clusters = asyncio.run(kmeans_cluster([[1, 0], [0, 1]], 5, seed=0, selector=selector))
        assert len(clusters) <= 2

    def test_centroids_unit_length(self, selector):
        """Test that returned centroids are normalised."""
        clusters = asyncio.run(kmeans_cluster(blobs(), 3, seed=3, selector=selector))
        for cluster in clusters:
            assert np.linalg.norm(cluster.centroid) == pytest.approx(1.0)

    def test_empty_input(self, selector):
        """Test that an empty set gives no clusters."""
        assert asyncio.run(kmeans_cluster([], 3, selector=selector)) == []

    @pytest.mark.parametrize("k", [0, -1])
    def test_invalid_k(self, selector, k):
        """Test that k <= 0 is rejected before any work."""
        with pytest.raises(InvalidClusterCount):
            asyncio.run(kmeans_cluster([[1, 0]], k, selector=selector))

    def test_ragged_input(self, selector):
        """Test that ragged input surfaces DimensionMismatch."""
        with pytest.raises(DimensionMismatch):
            asyncio.run(kmeans_cluster([[1, 0], [1]], 1, selector=selector))

    def test_progress_fraction(self, selector):
        """Test that progress reports iteration / max_iterations."""
        fractions = []
        asyncio.run(
            kmeans_cluster(
                blobs(), 3, on_progress=fractions.append, seed=0, selector=selector, max_iterations=50
            )
        )
        assert fractions == [i / 50 for i in range(1, len(fractions) + 1)]

    def test_cancelled_before_start(self, selector):
        """Test that a cancelled token stops the run with OperationCancelled."""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            asyncio.run(kmeans_cluster(blobs(), 3, seed=0, selector=selector, cancel_token=token))

    def test_clusters_are_frozen(self, cpu_selector):
        """Test that returned clusters cannot be modified."""
        cluster = asyncio.run(kmeans_cluster([[1, 0], [0, 1]], 1, seed=0, selector=cpu_selector))[0]
        with pytest.raises(ValueError):
            cluster.centroid[0] = 5.0


class TestConvergence:
    """Tests for run_kmeans_cpu convergence behaviour."""

    def test_converges_on_separated_data(self):
        """Test that well separated data converges before the bound."""
        matrix = blobs()
        run = run_kmeans_cpu(matrix, matrix[[0, 8, 16]])
        assert run.converged
        assert run.iterations < 100

    def test_restart_from_converged_centroids(self):
        """Test that restarting from converged centroids is already stable."""
        matrix = blobs(seed=7)
        first = run_kmeans_cpu(matrix, matrix[[0, 1, 2]])
        second = run_kmeans_cpu(matrix, first.centroids)

        assert np.array_equal(second.assignments, first.assignments)
        # One iteration to assign, one to confirm nothing changed
        assert second.iterations <= 2

    def test_iteration_bound(self):
        """Test that max_iterations caps the run."""
        matrix = blobs()
        run = run_kmeans_cpu(matrix, matrix[[0, 1, 2]], max_iterations=1)
        assert run.iterations == 1
        assert not run.converged

    def test_backends_agree(self, cpu_selector, parallel_selector):
        """Test that CPU and parallel runs from the same seed give the same clusters."""
        vectors = blobs(seed=11)
        cpu = asyncio.run(kmeans_cluster(vectors, 3, seed=9, selector=cpu_selector))
        parallel = asyncio.run(kmeans_cluster(vectors, 3, seed=9, selector=parallel_selector))
        assert [c.members for c in cpu] == [c.members for c in parallel]

    def test_backends_agree_on_near_ties(self, cpu_selector, parallel_selector):
        """Test that a row almost equidistant from two centroids lands in the same cluster."""
        # Row 2 sits 1e-9 rad nearer to row 1 than to row 0
        vectors = np.array(
            [
                [1.0, 0.0],
                [np.cos(0.6), np.sin(0.6)],
                [np.cos(0.3 + 1e-9), np.sin(0.3 + 1e-9)],
            ]
        )
        cpu = asyncio.run(
            kmeans_cluster(vectors, 2, rng=FixedChoice([0, 1]), selector=cpu_selector)
        )
        parallel = asyncio.run(
            kmeans_cluster(vectors, 2, rng=FixedChoice([0, 1]), selector=parallel_selector)
        )

        assert [c.members for c in cpu] == [frozenset({1, 2}), frozenset({0})]
        assert [c.members for c in parallel] == [c.members for c in cpu]

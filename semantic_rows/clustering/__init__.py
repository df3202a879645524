"""
Clustering engines.

Provides k-means and agglomerative clustering over cosine similarity, both
running on the parallel backend when available and on the CPU otherwise.
"""

from semantic_rows.clustering.hierarchical import hierarchical_cluster
from semantic_rows.clustering.kmeans import kmeans_cluster, run_kmeans_cpu
from semantic_rows.clustering.models import CancellationToken, Cluster, KMeansRun

__all__ = [
    "CancellationToken",
    "Cluster",
    "KMeansRun",
    "hierarchical_cluster",
    "kmeans_cluster",
    "run_kmeans_cpu",
]

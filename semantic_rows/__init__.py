"""
Semantic Rows - semantic comparison and topic modeling for tabular rows.

This package provides utilities for:
- Cosine similarity primitives and all-pairs ranking
- K-means and hierarchical clustering over cosine similarity
- A parallel compute backend with automatic CPU fallback
- TF-IDF keyword extraction
- Row comparison and topic modeling over CSV/XLSX tables
"""

__version__ = "0.1.0"

# Re-export commonly used items
from semantic_rows.clustering import CancellationToken, Cluster, hierarchical_cluster, kmeans_cluster
from semantic_rows.compute import BackendSelector, ComputeContext
from semantic_rows.errors import (
    BackendUnavailable,
    DimensionMismatch,
    DispatchFailure,
    InvalidClusterCount,
    OperationCancelled,
    SemanticRowsError,
)
from semantic_rows.keywords import extract_top_keywords, top_keywords
from semantic_rows.similarity import SimilarityPair, all_pairs, cosine_similarity

__all__ = [
    "__version__",
    # Engines
    "all_pairs",
    "cosine_similarity",
    "kmeans_cluster",
    "hierarchical_cluster",
    "top_keywords",
    "extract_top_keywords",
    # Types
    "SimilarityPair",
    "Cluster",
    "CancellationToken",
    "BackendSelector",
    "ComputeContext",
    # Errors
    "SemanticRowsError",
    "DimensionMismatch",
    "InvalidClusterCount",
    "BackendUnavailable",
    "DispatchFailure",
    "OperationCancelled",
]

"""
Similarity computation utilities.

Provides the cosine similarity primitives and the all-pairs ranking engine.
"""

from semantic_rows.similarity.cosine import (
    as_vector_matrix,
    cosine_similarity,
    cosine_similarity_matrix,
    normalize,
    validate_embedding,
    validate_similarity_score,
    vector_norm,
)
from semantic_rows.similarity.pairs import (
    SimilarityPair,
    all_pairs,
    pair_count,
    pair_index_to_rows,
    pair_indices_to_rows,
    top_k_pairs,
)

__all__ = [
    "as_vector_matrix",
    "cosine_similarity",
    "cosine_similarity_matrix",
    "normalize",
    "validate_embedding",
    "validate_similarity_score",
    "vector_norm",
    "SimilarityPair",
    "all_pairs",
    "pair_count",
    "pair_index_to_rows",
    "pair_indices_to_rows",
    "top_k_pairs",
]

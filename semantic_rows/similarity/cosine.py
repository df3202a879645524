"""
Cosine similarity primitives and norm utilities.

Every backend follows one numeric policy: score = dot(a, b) / (|a| * |b|),
and exactly 0.0 when either norm is zero. Normalising a zero vector leaves it
unchanged.
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from semantic_rows.errors import DimensionMismatch

logger = logging.getLogger(__name__)

Vector = Union[Sequence[float], NDArray[np.floating]]


def as_vector_matrix(
    vectors: Union[Sequence[Vector], NDArray[np.floating]],
    dtype=np.float64,
) -> NDArray[np.floating]:
    """
    Convert a vector set into a private 2-D matrix.

    The caller's vectors are copied, never referenced, so later in-place
    work cannot leak back to them.

    Args:
        vectors: Sequence of equal-length vectors (or a 2-D array)
        dtype: Element type of the returned matrix

    Returns:
        (N, dim) matrix. An empty set gives shape (0, 0).

    Raises:
        DimensionMismatch: If vectors do not all share one length
    """
    if isinstance(vectors, np.ndarray):
        if vectors.ndim != 2:
            if vectors.size == 0:
                return np.zeros((0, 0), dtype=dtype)
            raise ValueError(f"Expected a 2-D array of vectors, got {vectors.ndim}-D")
        return np.array(vectors, dtype=dtype, copy=True)

    if len(vectors) == 0:
        return np.zeros((0, 0), dtype=dtype)

    dim = len(vectors[0])
    for index, vector in enumerate(vectors):
        if len(vector) != dim:
            raise DimensionMismatch(expected=dim, actual=len(vector), index=index)

    matrix = np.empty((len(vectors), dim), dtype=dtype)
    for index, vector in enumerate(vectors):
        matrix[index] = vector
    return matrix


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1], or 0.0 if either vector has zero norm

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatch(expected=len(a), actual=len(b))

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    denominator = np.sqrt(np.dot(vec_a, vec_a)) * np.sqrt(np.dot(vec_b, vec_b))
    if denominator == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / denominator)


def vector_norm(vector: Vector) -> float:
    """Euclidean (L2) norm of a vector."""
    arr = np.asarray(vector, dtype=np.float64)
    return float(np.sqrt(np.dot(arr, arr)))


def normalize(vector: Vector) -> NDArray[np.float64]:
    """Return a unit-length copy of vector; a zero vector is returned unchanged."""
    arr = np.array(vector, dtype=np.float64, copy=True)
    norm = np.sqrt(np.dot(arr, arr))
    if norm == 0:
        return arr
    return arr / norm


def row_norms(matrix: NDArray[np.floating]) -> NDArray[np.floating]:
    """L2 norm of each row of a matrix."""
    return np.sqrt(np.einsum("ij,ij->i", matrix, matrix))


def safe_divide(numerator: NDArray[np.floating], denominator: NDArray[np.floating]):
    """Elementwise numerator / denominator, with 0.0 wherever denominator is zero."""
    out = np.zeros(np.broadcast(numerator, denominator).shape, dtype=numerator.dtype)
    np.divide(numerator, denominator, out=out, where=denominator != 0)
    return out


def similarities_to(matrix: NDArray[np.floating], vector: NDArray[np.floating]):
    """
    Cosine similarity of every row of matrix to one vector.

    Args:
        matrix: (N, dim) matrix
        vector: (dim,) vector

    Returns:
        (N,) array of similarities, zero-norm rows scoring 0.0
    """
    dots = matrix @ vector
    denominators = row_norms(matrix) * np.sqrt(np.dot(vector, vector))
    return safe_divide(dots, denominators)


def cosine_similarity_matrix(matrix: NDArray[np.floating]) -> NDArray[np.floating]:
    """
    Compute the all-rows cosine similarity matrix.

    Args:
        matrix: (N, dim) matrix

    Returns:
        (N, N) similarity matrix where N = len(matrix)
    """
    if matrix.size == 0:
        return np.zeros((len(matrix), len(matrix)), dtype=matrix.dtype)

    norms = row_norms(matrix)
    return safe_divide(matrix @ matrix.T, np.outer(norms, norms))


def normalize_rows(matrix: NDArray[np.floating]) -> NDArray[np.floating]:
    """Unit-normalise each row; zero rows stay zero."""
    norms = row_norms(matrix)[:, np.newaxis]
    return safe_divide(matrix, np.broadcast_to(norms, matrix.shape))


def validate_embedding(
    embedding: Optional[Vector],
    expected_dimension: Optional[int] = None,
) -> bool:
    """
    Validate an embedding vector.

    Args:
        embedding: Embedding vector to validate
        expected_dimension: Expected dimension (None accepts any non-empty length)

    Returns:
        True if valid, False otherwise
    """
    if embedding is None:
        return False
    if not isinstance(embedding, (list, tuple, np.ndarray)):
        return False
    if len(embedding) == 0:
        return False
    if expected_dimension is not None and len(embedding) != expected_dimension:
        logger.warning(f"Invalid embedding dimension: {len(embedding)} != {expected_dimension}")
        return False
    arr = np.asarray(embedding, dtype=np.float64)
    if not np.all(np.isfinite(arr)):
        logger.warning("Embedding contains NaN or Inf values")
        return False
    return True


def validate_similarity_score(score: Optional[float], tolerance: float = 0.0) -> bool:
    """
    Validate a similarity score is in valid range.

    Args:
        score: Similarity score to validate
        tolerance: Allowed overshoot past -1 or 1 (floating-point rounding)

    Returns:
        True if finite and in [-1 - tolerance, 1 + tolerance], False otherwise
    """
    if score is None:
        return False
    if not isinstance(score, (int, float, np.floating)):
        return False
    if not np.isfinite(score):
        return False
    if score < -1.0 - tolerance or score > 1.0 + tolerance:
        logger.warning(f"Similarity score out of range: {score}")
        return False
    return True


def row_norm_kernel(start: int, stop: int, vectors: np.ndarray, norms: np.ndarray) -> None:
    """Parallel unit body: write the norms of rows [start, stop)."""
    block = vectors[start:stop]
    norms[start:stop] = np.sqrt(np.einsum("ij,ij->i", block, block))

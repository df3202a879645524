"""
Unit tests for semantic_rows.similarity.cosine module.
"""

import numpy as np
import pytest

from semantic_rows.errors import DimensionMismatch
from semantic_rows.similarity.cosine import (
    as_vector_matrix,
    cosine_similarity,
    cosine_similarity_matrix,
    normalize,
    normalize_rows,
    row_norm_kernel,
    validate_embedding,
    validate_similarity_score,
    vector_norm,
)


class TestCosineSimilarity:
    """Tests for cosine_similarity function."""

    def test_identical_vectors(self):
        """Test that identical vectors score 1.0."""
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        """Test that orthogonal vectors score 0.0."""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        """Test that opposite vectors score -1.0."""
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        """Test that scaling a vector does not change the score."""
        assert cosine_similarity([1.0, 2.0], [10.0, 20.0]) == pytest.approx(1.0)

    def test_zero_vector_scores_zero(self):
        """Test that a zero-norm vector scores exactly 0.0."""
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_dimension_mismatch(self):
        """Test that vectors of different length raise DimensionMismatch."""
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_dimension_mismatch_is_value_error(self):
        """Test that DimensionMismatch can be caught as ValueError."""
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 2.0])

    def test_accepts_numpy_arrays(self):
        """Test that numpy arrays are accepted."""
        a = np.array([1.0, 1.0])
        b = np.array([1.0, 0.0])
        assert cosine_similarity(a, b) == pytest.approx(1 / np.sqrt(2))


class TestNormalize:
    """Tests for vector_norm and normalize functions."""

    def test_vector_norm(self):
        """Test the L2 norm of a 3-4-5 vector."""
        assert vector_norm([3.0, 4.0]) == pytest.approx(5.0)

    def test_normalize_unit_length(self):
        """Test that normalize returns a unit vector."""
        result = normalize([3.0, 4.0])
        assert result == pytest.approx([0.6, 0.8])

    def test_normalize_zero_vector_unchanged(self):
        """Test that a zero vector is returned unchanged."""
        result = normalize([0.0, 0.0, 0.0])
        assert list(result) == [0.0, 0.0, 0.0]

    def test_normalize_does_not_mutate_input(self):
        """Test that the input vector is not modified."""
        vector = np.array([3.0, 4.0])
        normalize(vector)
        assert list(vector) == [3.0, 4.0]

    def test_normalize_rows_keeps_zero_rows(self):
        """Test that normalize_rows leaves zero rows at zero."""
        result = normalize_rows(np.array([[3.0, 4.0], [0.0, 0.0]]))
        assert result[0] == pytest.approx([0.6, 0.8])
        assert list(result[1]) == [0.0, 0.0]


class TestAsVectorMatrix:
    """Tests for as_vector_matrix function."""

    def test_empty_input(self):
        """Test that an empty set gives a (0, 0) matrix."""
        assert as_vector_matrix([]).shape == (0, 0)

    def test_ragged_input_raises(self):
        """Test that vectors of different length raise DimensionMismatch."""
        with pytest.raises(DimensionMismatch) as exc_info:
            as_vector_matrix([[1.0, 2.0], [1.0, 2.0], [1.0]])
        assert exc_info.value.index == 2

    def test_input_is_copied(self):
        """Test that the matrix does not share memory with the input."""
        original = np.array([[1.0, 2.0], [3.0, 4.0]])
        matrix = as_vector_matrix(original)
        matrix[0, 0] = 99.0
        assert original[0, 0] == 1.0


class TestCosineSimilarityMatrix:
    """Tests for cosine_similarity_matrix function."""

    def test_empty_input(self):
        """Test that an empty matrix gives an empty result."""
        result = cosine_similarity_matrix(np.zeros((0, 0)))
        assert result.shape == (0, 0)

    def test_matches_pairwise_function(self):
        """Test that matrix entries match cosine_similarity."""
        vectors = np.array([[1.0, 0.0, 1.0], [0.5, 0.5, 0.0], [0.0, 0.0, 0.0]])
        matrix = cosine_similarity_matrix(vectors)
        for i in range(3):
            for j in range(3):
                assert matrix[i, j] == pytest.approx(cosine_similarity(vectors[i], vectors[j]))

    def test_symmetric(self):
        """Test that the matrix is symmetric."""
        vectors = np.random.default_rng(0).normal(size=(5, 4))
        matrix = cosine_similarity_matrix(vectors)
        assert np.allclose(matrix, matrix.T)


class TestRowNormKernel:
    """Tests for row_norm_kernel function."""

    def test_writes_only_its_range(self):
        """Test that the kernel writes norms for [start, stop) only."""
        vectors = np.array([[3.0, 4.0], [6.0, 8.0], [1.0, 0.0]])
        norms = np.full(3, -1.0)
        row_norm_kernel(1, 3, vectors, norms)
        assert list(norms) == [-1.0, 10.0, 1.0]


class TestValidateEmbedding:
    """Tests for validate_embedding function."""

    def test_valid_embedding(self):
        """Test that a valid embedding passes validation."""
        assert validate_embedding([0.1] * 8) is True

    def test_none_embedding(self):
        """Test that None fails validation."""
        assert validate_embedding(None) is False

    def test_empty_embedding(self):
        """Test that an empty embedding fails validation."""
        assert validate_embedding([]) is False

    def test_wrong_dimension(self):
        """Test that an unexpected dimension fails validation."""
        assert validate_embedding([0.1] * 100, expected_dimension=1536) is False

    def test_nan_values(self):
        """Test that NaN values fail validation."""
        assert validate_embedding([0.1, float("nan")]) is False


class TestValidateSimilarityScore:
    """Tests for validate_similarity_score function."""

    def test_valid_scores(self):
        """Test valid scores pass validation."""
        assert validate_similarity_score(0.5) is True
        assert validate_similarity_score(-1.0) is True
        assert validate_similarity_score(1.0) is True

    def test_invalid_scores(self):
        """Test None, NaN and out-of-range scores fail validation."""
        assert validate_similarity_score(None) is False
        assert validate_similarity_score(float("nan")) is False
        assert validate_similarity_score(1.5) is False

    def test_tolerance(self):
        """Test that tolerance admits rounding overshoot but not real errors."""
        assert validate_similarity_score(1.0 + 1e-12) is False
        assert validate_similarity_score(1.0 + 1e-12, tolerance=1e-9) is True
        assert validate_similarity_score(-1.0 - 1e-12, tolerance=1e-9) is True
        assert validate_similarity_score(1.1, tolerance=1e-9) is False

"""
Pytest configuration and shared fixtures for semantic_rows tests.
"""

import os
from typing import Dict, List

import numpy as np
import pytest

from semantic_rows.compute import BackendSelector, ComputeContext

# Keep tests independent of a developer's .env
os.environ.setdefault("SEMANTIC_ROWS_BACKEND", "auto")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

# Small vocabulary for the fake embedding source
VOCABULARY = ["cat", "dog", "pet", "car", "engine", "road", "apple", "banana", "fruit"]


class FakeEmbeddingSource:
    """Deterministic bag-of-words embeddings over VOCABULARY."""

    def __init__(self):
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        words = text.lower().split()
        return [float(words.count(term)) for term in VOCABULARY]


@pytest.fixture
def cpu_selector():
    """Selector that always runs the CPU backend."""
    selector = BackendSelector.cpu_only()
    yield selector
    selector.close()


@pytest.fixture
def parallel_selector():
    """Selector with a two-worker parallel backend and tiny workgroups."""
    selector = BackendSelector(ComputeContext(workers=2, workgroup_size=3))
    yield selector
    selector.close()


@pytest.fixture(params=["cpu", "parallel"])
def selector(request):
    """Run a test once per backend."""
    if request.param == "cpu":
        selector = BackendSelector.cpu_only()
    else:
        selector = BackendSelector(ComputeContext(workers=2, workgroup_size=3))
    yield selector
    selector.close()


@pytest.fixture
def near_tie_vectors():
    """
    Three unit vectors whose pair scores differ only past float32 precision.

    Row 2 is 1e-9 rad closer to row 0 than row 1 is, so (0, 2) is the
    strictly most similar pair.
    """
    return np.array(
        [
            [1.0, 0.0],
            [np.cos(0.3), np.sin(0.3)],
            [np.cos(0.3 - 1e-9), -np.sin(0.3 - 1e-9)],
        ]
    )


@pytest.fixture
def fake_embedding_source():
    """Deterministic embedding source, no network."""
    return FakeEmbeddingSource()


@pytest.fixture
def sample_rows() -> List[Dict[str, str]]:
    """Table rows about pets, cars and fruit."""
    return [
        {"name": "Whiskers", "description": "cat pet"},
        {"name": "Rex", "description": "dog pet"},
        {"name": "Roadster", "description": "car engine road"},
        {"name": "Truck", "description": "car engine"},
        {"name": "Snack", "description": "apple fruit"},
        {"name": "Split", "description": "banana fruit"},
    ]

"""
Integration tests for row comparison and topic modeling.

These run the full analysis path (row text, embeddings, engines, keywords)
with a deterministic embedding source on both backends.
"""

import asyncio

import pytest

from semantic_rows.analysis import compare_rows, model_topics

pytestmark = pytest.mark.integration


class TestCompareRows:
    """Tests for compare_rows."""

    def test_most_similar_pair_first(self, sample_rows, fake_embedding_source, selector):
        """Test that the two car rows rank highest."""
        result = asyncio.run(
            compare_rows(sample_rows, ["description"], fake_embedding_source, selector=selector)
        )
        top = result.pairs[0]
        assert (top.index_a, top.index_b) == (2, 3)
        assert len(result.pairs) == 15
        assert sorted(result.embeddings) == list(range(6))

    def test_empty_rows_keep_row_indices(self, sample_rows, fake_embedding_source, selector):
        """Test that rows with no text are skipped without shifting indices."""
        rows = [{"description": ""}] + sample_rows[:2]
        result = asyncio.run(
            compare_rows(rows, ["description"], fake_embedding_source, selector=selector)
        )
        assert [(p.index_a, p.index_b) for p in result.pairs] == [(1, 2)]

    def test_progress_phases(self, sample_rows, fake_embedding_source, cpu_selector):
        """Test that progress goes 0-70 while embedding and ends at 100."""
        calls = []
        asyncio.run(
            compare_rows(
                sample_rows,
                ["description"],
                fake_embedding_source,
                on_progress=lambda percent, phase: calls.append((percent, phase)),
                selector=cpu_selector,
            )
        )
        embedding = [p for p, phase in calls if phase == "embeddings"]
        assert max(embedding) == 70
        assert calls[-1] == (100, "similarity")
        assert [p for p, _ in calls] == sorted(p for p, _ in calls)

    def test_requires_columns(self, sample_rows, fake_embedding_source):
        """Test that an empty column list is rejected."""
        with pytest.raises(ValueError):
            asyncio.run(compare_rows(sample_rows, [], fake_embedding_source))


class TestModelTopics:
    """Tests for model_topics."""

    @pytest.mark.parametrize("method", ["kmeans", "hierarchical"])
    def test_three_topics(self, sample_rows, fake_embedding_source, selector, method):
        """Test that pets, cars and fruit become separate topics."""
        model = asyncio.run(
            model_topics(
                sample_rows,
                ["description", "name"],
                fake_embedding_source,
                num_topics=3,
                method=method,
                selector=selector,
                seed=0,
            )
        )
        groups = sorted(sorted(topic.document_indices) for topic in model.topics)
        if method == "hierarchical":
            assert groups == [[0, 1], [2, 3], [4, 5]]
        assert sorted(i for g in groups for i in g) == list(range(6))
        assert [topic.label for topic in model.topics] == [
            f"Topic {i + 1}" for i in range(len(model.topics))
        ]

    def test_keywords_from_first_column(self, sample_rows, fake_embedding_source, cpu_selector):
        """Test that keywords come from the first analysis column only."""
        model = asyncio.run(
            model_topics(
                sample_rows,
                ["description", "name"],
                fake_embedding_source,
                num_topics=3,
                method="hierarchical",
                selector=cpu_selector,
            )
        )
        fruit = next(t for t in model.topics if 4 in t.document_indices)
        # "fruit" is in every fruit row, so it scores zero and ranks last
        assert fruit.keywords == ["apple", "banana", "fruit"]

    def test_reuses_embeddings(self, sample_rows, fake_embedding_source, cpu_selector):
        """Test that supplied embeddings skip the embedding phase."""
        first = asyncio.run(
            model_topics(sample_rows, ["description"], fake_embedding_source, selector=cpu_selector)
        )
        calls = len(fake_embedding_source.calls)
        second = asyncio.run(
            model_topics(
                sample_rows,
                ["description"],
                embeddings=first.embeddings,
                method="hierarchical",
                num_topics=2,
                selector=cpu_selector,
            )
        )
        assert len(fake_embedding_source.calls) == calls
        assert len(second.topics) == 2

    def test_unknown_method(self, sample_rows, fake_embedding_source):
        """Test that an unknown clustering method raises ValueError."""
        with pytest.raises(ValueError, match="Unknown clustering method"):
            asyncio.run(
                model_topics(sample_rows, ["description"], fake_embedding_source, method="dbscan")
            )

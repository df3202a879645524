"""
Topic modeling over table rows.

Rows are embedded (0-60%), clustered into topics (60-90%), and each topic is
labelled with TF-IDF keywords from the first analysis column of its rows
(90-100%).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from semantic_rows.analysis.rows import PhaseProgressCallback, Row, build_row_texts, report_phase
from semantic_rows.clustering import CancellationToken, hierarchical_cluster, kmeans_cluster
from semantic_rows.compute import BackendSelector
from semantic_rows.constants import (
    DEFAULT_NUM_TOPICS,
    DEFAULT_TOP_KEYWORDS,
    TOPIC_CLUSTERING_SHARE,
    TOPIC_EMBEDDING_SHARE,
)
from semantic_rows.embeddings import EmbeddingSource, embed_texts
from semantic_rows.keywords import extract_top_keywords

logger = logging.getLogger(__name__)

CLUSTERING_METHODS = ("kmeans", "hierarchical")


@dataclass
class Topic:
    """A cluster of rows with its keyword label."""

    id: int
    label: str
    keywords: List[str]
    document_indices: List[int]  # Row indices, ascending
    centroid: List[float]
    coherence: float

    def to_dict(self) -> Dict:
        """Convert to dict for JSON serialization."""
        return {
            "id": self.id,
            "label": self.label,
            "keywords": self.keywords,
            "document_indices": self.document_indices,
            "centroid": self.centroid,
            "coherence": self.coherence,
        }


@dataclass
class TopicModel:
    """Topics plus the embeddings they were built from, for reuse."""

    topics: List[Topic]
    embeddings: Dict[int, List[float]] = field(default_factory=dict)  # Row index -> embedding


async def model_topics(
    rows: Sequence[Row],
    columns: Sequence[str],
    source: Optional[EmbeddingSource] = None,
    num_topics: int = DEFAULT_NUM_TOPICS,
    method: str = "kmeans",
    top_keywords: int = DEFAULT_TOP_KEYWORDS,
    embeddings: Optional[Dict[int, List[float]]] = None,
    on_progress: Optional[PhaseProgressCallback] = None,
    selector: Optional[BackendSelector] = None,
    seed: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> TopicModel:
    """
    Group rows into topics and label each one with keywords.

    Args:
        rows: Table rows
        columns: Analysis columns; keywords come from the first one
        source: Embedding source (not needed when embeddings are given)
        num_topics: Requested number of topics
        method: "kmeans" or "hierarchical"
        top_keywords: Keywords per topic
        embeddings: Row index -> embedding from an earlier run; skips embedding
        on_progress: Called with (percent, phase)
        selector: Backend selector for the clustering engine
        seed: Seed for k-means initialisation
        cancel_token: Optional cooperative cancellation for clustering

    Returns:
        TopicModel with topics largest first

    Raises:
        ValueError: For an unknown method, no columns, or no way to get embeddings
    """
    if method not in CLUSTERING_METHODS:
        raise ValueError(f"Unknown clustering method: {method} (expected one of {CLUSTERING_METHODS})")
    if not columns:
        raise ValueError("At least one analysis column is required")

    if embeddings is None:
        if source is None:
            raise ValueError("An embedding source is required when no embeddings are given")
        row_indices, vectors = await embed_texts(
            source,
            build_row_texts(rows, columns),
            lambda current, total: report_phase(
                on_progress, current / total * TOPIC_EMBEDDING_SHARE, "embeddings"
            ),
        )
        embeddings = dict(zip(row_indices, vectors))
    else:
        row_indices = sorted(embeddings)
        vectors = [embeddings[index] for index in row_indices]

    def on_cluster_progress(fraction: float) -> None:
        report_phase(
            on_progress, TOPIC_EMBEDDING_SHARE + fraction * TOPIC_CLUSTERING_SHARE, "clustering"
        )

    if method == "kmeans":
        clusters = await kmeans_cluster(
            vectors,
            num_topics,
            on_progress=on_cluster_progress,
            seed=seed,
            selector=selector,
            cancel_token=cancel_token,
        )
    else:
        clusters = await hierarchical_cluster(
            vectors,
            num_topics,
            on_progress=on_cluster_progress,
            selector=selector,
            cancel_token=cancel_token,
        )

    report_phase(on_progress, TOPIC_EMBEDDING_SHARE + TOPIC_CLUSTERING_SHARE, "keywords")
    keyword_column = columns[0]
    topics = []
    for topic_id, cluster in enumerate(clusters):
        document_indices = [row_indices[member] for member in cluster.member_indices()]
        texts = [
            rows[index][keyword_column]
            for index in document_indices
            if rows[index].get(keyword_column) is not None
        ]
        topics.append(
            Topic(
                id=topic_id,
                label=f"Topic {topic_id + 1}",
                keywords=await extract_top_keywords(texts, top_keywords),
                document_indices=document_indices,
                centroid=[float(x) for x in np.asarray(cluster.centroid)],
                coherence=cluster.coherence,
            )
        )

    report_phase(on_progress, 100, "keywords")
    logger.info(
        f"Built {len(topics)} topics from {len(row_indices)} rows using {method}",
        extra={"operation": "model_topics", "count": len(topics)},
    )
    return TopicModel(topics=topics, embeddings=embeddings)

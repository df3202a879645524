"""Row-level analyses built on the similarity and clustering engines."""

from semantic_rows.analysis.comparison import ComparisonResult, compare_rows
from semantic_rows.analysis.rows import build_row_texts, list_sheets, load_table
from semantic_rows.analysis.topics import Topic, TopicModel, model_topics

__all__ = [
    "ComparisonResult",
    "compare_rows",
    "build_row_texts",
    "list_sheets",
    "load_table",
    "Topic",
    "TopicModel",
    "model_topics",
]

"""
Command-line entry points.

Provides shared functionality for:
- Logging setup (console, plus JSON file logs on request)
- Backend selection from --backend
- tqdm progress for analysis phases
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from semantic_rows.analysis import compare_rows, load_table, model_topics
from semantic_rows.compute import BackendSelector
from semantic_rows.config import get_log_dir
from semantic_rows.constants import DEFAULT_MAX_DISPLAY_PAIRS, DEFAULT_NUM_TOPICS, DEFAULT_TOP_KEYWORDS
from semantic_rows.embeddings import OpenAIEmbeddingSource, suppress_http_logging
from semantic_rows.errors import SemanticRowsError
from semantic_rows.logging import setup_structured_logging
from semantic_rows.similarity import top_k_pairs


def setup_logging(
    script_name: str,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging for a command.

    Args:
        script_name: Name of the command (for the logger name)
        verbose: If True, log at DEBUG (per-call backend timings)
        log_dir: Directory for JSON log files (None = console only)

    Returns:
        Configured logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO
    setup_structured_logging("semantic_rows", level=level, log_dir=log_dir)
    suppress_http_logging()
    return logging.getLogger(f"semantic_rows.{script_name}")


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the file, column, backend and logging arguments shared by all commands."""
    parser.add_argument("file", type=Path, help="CSV or XLSX file")
    parser.add_argument(
        "--columns", "-c", nargs="+", required=True, help="Columns whose text is analysed"
    )
    parser.add_argument("--sheet", help="Worksheet name for XLSX files (default: first sheet)")
    parser.add_argument(
        "--backend",
        choices=["auto", "cpu"],
        default="auto",
        help="Compute backend (default: auto, from SEMANTIC_ROWS_BACKEND)",
    )
    parser.add_argument("--output", "-o", type=Path, help="Write results as JSON to this file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument(
        "--log-file",
        action="store_true",
        help=f"Also write JSON logs to the log directory ({get_log_dir()})",
    )


def build_selector(backend: str) -> BackendSelector:
    """Selector for the --backend choice."""
    if backend == "cpu":
        return BackendSelector.cpu_only()
    return BackendSelector.from_config()


class PhaseProgressBar:
    """tqdm bar driven by (percent, phase) callbacks."""

    def __init__(self, desc: str):
        self.bar = tqdm(total=100, desc=desc, unit="%")

    def __call__(self, percent: int, phase: str) -> None:
        self.bar.set_postfix_str(phase)
        if percent > self.bar.n:
            self.bar.update(percent - self.bar.n)

    def close(self) -> None:
        self.bar.close()


def _write_json(path: Path, payload, logger: logging.Logger) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Wrote results to {path}")


async def _compare(args, logger: logging.Logger) -> int:
    headers, rows = load_table(args.file, args.sheet)
    missing = [column for column in args.columns if column not in headers]
    if missing:
        logger.error(f"Unknown columns: {', '.join(missing)} (available: {', '.join(headers)})")
        return 1

    selector = build_selector(args.backend)
    progress = PhaseProgressBar("Comparing rows")
    try:
        result = await compare_rows(
            rows, args.columns, OpenAIEmbeddingSource(), on_progress=progress, selector=selector
        )
    finally:
        progress.close()
        selector.close()

    top = top_k_pairs(result.pairs, args.top, args.threshold)
    logger.info("=" * 70)
    logger.info(f"Top {len(top)} of {len(result.pairs)} similar row pairs")
    logger.info("=" * 70)
    for pair in top:
        text_a = " ".join(rows[pair.index_a].get(c, "") for c in args.columns)
        text_b = " ".join(rows[pair.index_b].get(c, "") for c in args.columns)
        logger.info(f"{pair.score:.4f}  row {pair.index_a}: {text_a[:60]!r}")
        logger.info(f"        row {pair.index_b}: {text_b[:60]!r}")

    if args.output:
        _write_json(
            args.output,
            [{"index_a": p.index_a, "index_b": p.index_b, "score": p.score} for p in top],
            logger,
        )
    return 0


async def _topics(args, logger: logging.Logger) -> int:
    headers, rows = load_table(args.file, args.sheet)
    missing = [column for column in args.columns if column not in headers]
    if missing:
        logger.error(f"Unknown columns: {', '.join(missing)} (available: {', '.join(headers)})")
        return 1

    selector = build_selector(args.backend)
    progress = PhaseProgressBar("Modeling topics")
    try:
        model = await model_topics(
            rows,
            args.columns,
            OpenAIEmbeddingSource(),
            num_topics=args.topics,
            method=args.method,
            top_keywords=args.keywords,
            on_progress=progress,
            selector=selector,
            seed=args.seed,
        )
    finally:
        progress.close()
        selector.close()

    logger.info("=" * 70)
    logger.info(f"{len(model.topics)} topics ({args.method})")
    logger.info("=" * 70)
    for topic in model.topics:
        logger.info(
            f"{topic.label}: {len(topic.document_indices)} rows, "
            f"coherence {topic.coherence:.3f}, keywords: {', '.join(topic.keywords)}"
        )

    if args.output:
        _write_json(args.output, [topic.to_dict() for topic in model.topics], logger)
    return 0


def _run(command, args, script_name: str) -> int:
    logger = setup_logging(script_name, args.verbose, get_log_dir() if args.log_file else None)
    try:
        return asyncio.run(command(args, logger))
    except (SemanticRowsError, ValueError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1


# CLI entry points for pyproject.toml [project.scripts]


def run_compare(argv: Optional[List[str]] = None):
    """Entry point for semantic-rows-compare command."""
    parser = argparse.ArgumentParser(description="Rank row pairs by semantic similarity")
    add_common_arguments(parser)
    parser.add_argument(
        "--top", type=int, default=DEFAULT_MAX_DISPLAY_PAIRS, help="Number of pairs to show"
    )
    parser.add_argument("--threshold", type=float, help="Minimum similarity score to show")
    args = parser.parse_args(argv)
    sys.exit(_run(_compare, args, "compare"))


def run_topics(argv: Optional[List[str]] = None):
    """Entry point for semantic-rows-topics command."""
    parser = argparse.ArgumentParser(description="Group rows into topics")
    add_common_arguments(parser)
    parser.add_argument(
        "--method", choices=["kmeans", "hierarchical"], default="kmeans", help="Clustering method"
    )
    parser.add_argument(
        "--topics", "-k", type=int, default=DEFAULT_NUM_TOPICS, help="Number of topics"
    )
    parser.add_argument(
        "--keywords", type=int, default=DEFAULT_TOP_KEYWORDS, help="Keywords per topic"
    )
    parser.add_argument("--seed", type=int, help="Random seed for k-means initialisation")
    args = parser.parse_args(argv)
    sys.exit(_run(_topics, args, "topics"))

"""
Configuration management for semantic_rows.

Loads environment variables and provides configuration defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from semantic_rows.constants import DEFAULT_MAX_BUFFER_MB, EMBEDDING_MODEL
from semantic_rows.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

BACKEND_MODES = ("auto", "cpu")


# Compute backend configuration
def get_backend_mode() -> str:
    """Get compute backend mode ("auto" probes the parallel backend, "cpu" forces CPU)."""
    mode = os.getenv("SEMANTIC_ROWS_BACKEND", "auto").strip().lower()
    if mode not in BACKEND_MODES:
        raise ConfigurationError(
            f"SEMANTIC_ROWS_BACKEND must be one of {', '.join(BACKEND_MODES)}, got {mode!r}"
        )
    return mode


def get_worker_count() -> int:
    """Get number of parallel workers from environment or CPU count."""
    raw = os.getenv("SEMANTIC_ROWS_WORKERS", "").strip()
    if not raw:
        return os.cpu_count() or 1
    try:
        workers = int(raw)
    except ValueError:
        raise ConfigurationError(f"SEMANTIC_ROWS_WORKERS must be an integer, got {raw!r}")
    if workers < 1:
        raise ConfigurationError(f"SEMANTIC_ROWS_WORKERS must be >= 1, got {workers}")
    return workers


def get_max_buffer_bytes() -> int:
    """Get the live device buffer budget in bytes."""
    raw = os.getenv("SEMANTIC_ROWS_MAX_BUFFER_MB", "").strip()
    if not raw:
        return DEFAULT_MAX_BUFFER_MB * 1024 * 1024
    try:
        megabytes = float(raw)
    except ValueError:
        raise ConfigurationError(f"SEMANTIC_ROWS_MAX_BUFFER_MB must be a number, got {raw!r}")
    if megabytes <= 0:
        raise ConfigurationError(f"SEMANTIC_ROWS_MAX_BUFFER_MB must be > 0, got {raw}")
    return int(megabytes * 1024 * 1024)


# OpenAI configuration
def get_openai_api_key() -> str:
    """Get OpenAI API key from environment."""
    key = os.getenv("OPENAI_API_KEY", "").strip()
    if not key:
        raise ValueError("OPENAI_API_KEY not set in .env file")
    return key


def get_embedding_model() -> str:
    """Get embedding model name from environment or default."""
    return os.getenv("EMBEDDING_MODEL", EMBEDDING_MODEL).strip() or EMBEDDING_MODEL


# Paths
def get_log_dir() -> Path:
    """Get log directory (SEMANTIC_ROWS_LOG_DIR or ./logs)."""
    return Path(os.getenv("SEMANTIC_ROWS_LOG_DIR", "logs"))

"""
Constants for semantic_rows package.

Centralizes magic numbers and configuration defaults.
"""

import numpy as np

# K-means defaults
MAX_KMEANS_ITERATIONS = 100
DEFAULT_NUM_TOPICS = 5

# Parallel dispatch
WORKGROUP_SIZE = 4096  # Parallel units (rows or pairs) per submitted task
DEVICE_DTYPE = np.float64  # Precision of device buffers, same as the CPU path
DEFAULT_MAX_BUFFER_MB = 1024  # Live device buffer budget per context
PROBE_VECTOR_DIM = 8  # Size of the self-test dispatch run at probe time

# Backends are expected to agree within this tolerance
BACKEND_EQUIVALENCE_TOLERANCE = 1e-4
SCORE_ROUNDING_TOLERANCE = 1e-9  # Overshoot past [-1, 1] accepted in device readback

# Keyword extraction
DEFAULT_TOP_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 3

# Presentation defaults
DEFAULT_MAX_DISPLAY_PAIRS = 50

# Embedding defaults
EMBEDDING_MODEL = "text-embedding-3-small"

# Progress weights used by the row analysis pipelines (percent of total)
COMPARISON_EMBEDDING_SHARE = 70
TOPIC_EMBEDDING_SHARE = 60
TOPIC_CLUSTERING_SHARE = 30

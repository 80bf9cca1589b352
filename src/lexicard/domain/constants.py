"""Centralized constants for lexicard.

All magic numbers and scheduling defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Normalization ----------
MAX_TRANSLATION_LEN = 120
MAX_DIGEST_LEN = 40
MAX_TAGS = 10

# ---------- Import ----------
PREVIEW_LIMIT = 20
POLYSEMY_TAG = "polysemy"
NO_VALID_ROWS_WARNING = "no valid rows found"

# ---------- Scheduling (SM-2 variant) ----------
INITIAL_EASE = 2.5
MIN_EASE = 1.3
AGAIN_EASE_PENALTY = 0.2
FIRST_INTERVAL = 1  # days
SECOND_INTERVAL = 6  # days

# ---------- Session Composer ----------
DEFAULT_SESSION_SIZE = 20
DUE_RATIO = 0.6
LEARNING_RATIO = 0.25
LEARNING_MAX_INTERVAL = 2  # days
REINSERT_OFFSET = 3

# ---------- Stats ----------
STATS_WINDOWS = (7, 30, 90)
TREND_DAYS = 7

"""
Domain models for vocabulary cards, review state and import bookkeeping.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Grade(str, Enum):
    """Self-reported recall quality for one attempt."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def quality(self) -> int:
        return _QUALITY[self]


_QUALITY = {Grade.AGAIN: 0, Grade.HARD: 3, Grade.GOOD: 4, Grade.EASY: 5}


class QuizMode(str, Enum):
    ENG_TO_TRANSLATION = "eng2cn"
    TRANSLATION_TO_ENG = "cn2eng"
    LISTENING = "listening"
    PHONETIC = "ipa"


@dataclass
class Card:
    """
    One sense of a vocabulary term.

    Attributes:
        card_id: Stable identifier (``card_<ULID>``).
        term: Original term text as imported.
        normalized_term: Canonical matching key for the term.
        translation_digest: Truncated canonical fingerprint of the translation.
        source_batch: Id of the import batch that created the card.
    """

    card_id: str
    term: str
    normalized_term: str
    created_at: datetime
    updated_at: datetime
    translation: str | None = None
    translation_digest: str = ""
    phonetic: str | None = None
    tags: list[str] = field(default_factory=list)
    source_batch: str | None = None
    notes: str | None = None

    @property
    def fingerprint(self) -> tuple[str, str]:
        return (self.normalized_term, self.translation_digest)


@dataclass(frozen=True)
class ReviewState:
    """
    Scheduling state for a card. One-to-one with Card.

    Attributes:
        ease: SM-2 ease factor, never below 1.3.
        interval: Current interval in days.
        reps: Number of graded repetitions.
        lapses: Number of "again" grades.
        next_review: When the card becomes due.
        attempts: Cumulative graded attempts.
        correct: Cumulative correct attempts.
        avg_latency: Running average response latency in seconds.
    """

    card_id: str
    next_review: datetime
    ease: float = 2.5
    interval: int = 0
    reps: int = 0
    lapses: int = 0
    last_review: datetime | None = None
    attempts: int = 0
    correct: int = 0
    avg_latency: float = 0.0
    metrics: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class LogEntry:
    """A single graded attempt. Never mutated."""

    timestamp: datetime
    card_id: str
    mode: QuizMode
    grade: Grade
    latency: float  # seconds
    correct: bool
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportBatchRecord:
    batch_id: str
    source: str
    timestamp: datetime
    new_count: int
    updated_count: int
    conflict_count: int
    skipped_count: int
    content_hash: str | None = None
    notes: str | None = None


@dataclass
class RawRow:
    """A row as produced by an external spreadsheet/CSV parser."""

    term: str
    translation: str | None = None
    phonetic: str | None = None
    tags_raw: str | None = None
    notes: str | None = None


@dataclass
class ImportReport:
    batch_label: str
    new_count: int = 0
    updated_count: int = 0
    conflict_count: int = 0
    skipped_count: int = 0
    preview: list[RawRow] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    batch_id: str | None = None  # None when nothing was written


@dataclass(frozen=True)
class SessionItem:
    card: Card
    state: ReviewState
    mode: QuizMode

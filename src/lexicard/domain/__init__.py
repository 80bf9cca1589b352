# Domain Package
from .errors import (
    GradingPreconditionError,
    ImportFailure,
    LexicardError,
    StorageError,
)
from .models import (
    Card,
    Grade,
    ImportBatchRecord,
    ImportReport,
    LogEntry,
    QuizMode,
    RawRow,
    ReviewState,
    SessionItem,
)
from .ports import Clock, ContentHasher, SpeechPlayer, VocabRepository

__all__ = [
    "Card",
    "Clock",
    "ContentHasher",
    "Grade",
    "GradingPreconditionError",
    "ImportBatchRecord",
    "ImportFailure",
    "ImportReport",
    "LexicardError",
    "LogEntry",
    "QuizMode",
    "RawRow",
    "ReviewState",
    "SessionItem",
    "SpeechPlayer",
    "StorageError",
    "VocabRepository",
]

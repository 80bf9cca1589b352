"""
Domain models for study statistics.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class WindowStats:
    """
    Attempt rollup over a lookback window.

    Attributes:
        days: Window length in days, counted back from now.
        attempts: Graded attempts in the window.
        correct: Attempts not graded "again".
        accuracy: Percent correct, rounded; 0 when there were no attempts.
        seconds: Total response latency in seconds.
    """

    days: int
    attempts: int
    correct: int
    accuracy: int
    seconds: float


@dataclass(frozen=True)
class DailyTrendPoint:
    """
    One calendar day of the trend, in the clock's timezone.

    ``due`` is a forward-looking projection: review states whose next_review
    falls before the end of this day, not attempts made on it.
    """

    day: date
    attempts: int
    correct: int
    seconds: float
    due: int


@dataclass
class StatsOverview:
    windows: list[WindowStats] = field(default_factory=list)
    trend: list[DailyTrendPoint] = field(default_factory=list)

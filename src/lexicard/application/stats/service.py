"""
Stats aggregator: read-only rollups over attempt logs and review states.

Coordinates fetching log entries and review states from the repository and
folding them into lookback windows and a daily trend.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, time, timedelta

from lexicard.application.scheduler import round_half_up
from lexicard.domain.constants import STATS_WINDOWS, TREND_DAYS
from lexicard.domain.models import LogEntry
from lexicard.domain.ports import Clock, VocabRepository, utc_now
from lexicard.domain.stats.models import DailyTrendPoint, StatsOverview, WindowStats

logger = logging.getLogger(__name__)


def _rollup(entries: Iterable[LogEntry]) -> tuple[int, int, float]:
    attempts = correct = 0
    seconds = 0.0
    for entry in entries:
        attempts += 1
        correct += 1 if entry.correct else 0
        seconds += entry.latency
    return attempts, correct, seconds


def accuracy_percent(correct: int, attempts: int) -> int:
    if attempts == 0:
        return 0
    return round_half_up(correct / attempts * 100)


class StatsAggregator:
    """
    Application service for study statistics.

    Stateless apart from its collaborators; every call re-reads the repository.
    """

    def __init__(self, repo: VocabRepository, clock: Clock | None = None):
        self._repo = repo
        self._clock = clock or utc_now

    def window_stats(self, windows: Iterable[int] = STATS_WINDOWS) -> list[WindowStats]:
        """
        Attempt counts, accuracy and time spent for each lookback window.

        Args:
            windows: Window lengths in days.
        """
        windows = list(windows)
        if not windows:
            return []

        now = self._clock()
        entries = self._repo.log_entries_since(now - timedelta(days=max(windows)))

        result = []
        for days in windows:
            since = now - timedelta(days=days)
            attempts, correct, seconds = _rollup(e for e in entries if e.timestamp >= since)
            result.append(
                WindowStats(
                    days=days,
                    attempts=attempts,
                    correct=correct,
                    accuracy=accuracy_percent(correct, attempts),
                    seconds=seconds,
                )
            )
        return result

    def daily_trend(self, days: int = TREND_DAYS) -> list[DailyTrendPoint]:
        """
        Per-day attempts and due projection for the last ``days`` days, oldest first.

        Days are calendar days in the clock's timezone; today is the last point.
        """
        now = self._clock()
        today_start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        first_start = today_start - timedelta(days=days - 1)

        entries = self._repo.log_entries_since(first_start)
        next_reviews = sorted(s.next_review for s in self._repo.list_review_states())

        trend = []
        for offset in range(days):
            start = first_start + timedelta(days=offset)
            end = start + timedelta(days=1)
            attempts, correct, seconds = _rollup(
                e for e in entries if start <= e.timestamp < end
            )
            trend.append(
                DailyTrendPoint(
                    day=start.date(),
                    attempts=attempts,
                    correct=correct,
                    seconds=seconds,
                    due=sum(1 for nr in next_reviews if nr < end),
                )
            )
        return trend

    def overview(self) -> StatsOverview:
        overview = StatsOverview(windows=self.window_stats(), trend=self.daily_trend())
        logger.debug(f"Stats overview computed for {len(overview.trend)} days")
        return overview

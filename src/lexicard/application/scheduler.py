"""
Scheduling update for review states (deterministic SM-2 variant).

This is a pure computation module with no I/O. The caller always passes
``now``; nothing here reads a wall clock.
"""

import math
from dataclasses import replace
from datetime import datetime, timedelta

from lexicard.domain.constants import (
    AGAIN_EASE_PENALTY,
    FIRST_INTERVAL,
    INITIAL_EASE,
    MIN_EASE,
    SECOND_INTERVAL,
)
from lexicard.domain.models import Grade, ReviewState


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive input."""
    return int(math.floor(value + 0.5))


def new_review_state(card_id: str, now: datetime) -> ReviewState:
    """Fresh state for a newly created card: due immediately, no history."""
    return ReviewState(
        card_id=card_id,
        next_review=now,
        ease=INITIAL_EASE,
        interval=0,
        reps=0,
        lapses=0,
    )


def update(state: ReviewState, grade: Grade, now: datetime) -> ReviewState:
    """
    Apply one graded recall to a review state.

    Args:
        state: Current review state.
        grade: Learner's self-reported recall quality.
        now: Review time; next_review is scheduled relative to it.

    Returns:
        A new ReviewState; the input is not modified.
    """
    grade = Grade(grade)

    if grade is Grade.AGAIN:
        ease = max(MIN_EASE, state.ease - AGAIN_EASE_PENALTY)
        interval = FIRST_INTERVAL
        lapses = state.lapses + 1
    else:
        penalty = 5 - grade.quality
        ease = max(MIN_EASE, state.ease + 0.1 - penalty * (0.08 + penalty * 0.02))
        if state.reps == 0:
            interval = FIRST_INTERVAL
        elif state.reps == 1:
            interval = SECOND_INTERVAL
        else:
            interval = max(1, round_half_up(state.interval * ease))
        lapses = state.lapses

    return replace(
        state,
        ease=ease,
        interval=interval,
        reps=state.reps + 1,
        lapses=lapses,
        last_review=now,
        next_review=now + timedelta(days=interval),
    )


def record_attempt(state: ReviewState, latency: float, correct: bool) -> ReviewState:
    """Fold one attempt into the cumulative counters and running-average latency."""
    attempts = state.attempts
    avg = (state.avg_latency * attempts + latency) / (attempts + 1)
    return replace(
        state,
        attempts=attempts + 1,
        correct=state.correct + (1 if correct else 0),
        avg_latency=avg,
    )

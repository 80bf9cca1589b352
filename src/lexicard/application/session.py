"""
Session composer and live study session.

Builds bounded practice queues by:
1. Partitioning review states into due, learning and new pools
2. Taking quota-bounded slices from each pool (60% / 25% / remainder)
3. Backfilling from the pools' leftovers when a pool runs short
4. Joining each state with its card and assigning a quiz mode
"""

import logging
import random
import threading
from dataclasses import dataclass, replace
from datetime import datetime

from lexicard.application.modes import assign_mode
from lexicard.application.scheduler import record_attempt, round_half_up, update
from lexicard.domain.constants import (
    DUE_RATIO,
    LEARNING_MAX_INTERVAL,
    LEARNING_RATIO,
    REINSERT_OFFSET,
)
from lexicard.domain.errors import GradingPreconditionError
from lexicard.domain.models import (
    Card,
    Grade,
    LogEntry,
    QuizMode,
    ReviewState,
    SessionItem,
)
from lexicard.domain.ports import Clock, SpeechPlayer, VocabRepository, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionQuotas:
    due: int
    learning: int
    new: int

    @classmethod
    def for_size(
        cls,
        size: int,
        due_ratio: float = DUE_RATIO,
        learning_ratio: float = LEARNING_RATIO,
    ) -> "SessionQuotas":
        due = round_half_up(size * due_ratio)
        learning = round_half_up(size * learning_ratio)
        return cls(due=due, learning=learning, new=max(0, size - due - learning))


@dataclass
class SessionPools:
    due: list[ReviewState]
    learning: list[ReviewState]
    new: list[ReviewState]


def build_pools(repo: VocabRepository, now: datetime, rng: random.Random) -> SessionPools:
    """
    Partition review states against ``now``.

    New states (reps == 0) only ever land in the new pool, even though they are
    due from the moment they are imported.
    """
    due = [s for s in repo.review_states_due(now) if s.reps > 0]

    learning: list[ReviewState] = []
    new: list[ReviewState] = []
    for state in repo.list_review_states():
        if state.reps == 0:
            new.append(state)
        elif state.interval <= LEARNING_MAX_INTERVAL and state.next_review > now:
            learning.append(state)

    # Sort before shuffling so a seeded rng gives the same order for any storage order.
    learning.sort(key=lambda s: s.card_id)
    new.sort(key=lambda s: s.card_id)
    rng.shuffle(learning)
    rng.shuffle(new)
    return SessionPools(due=due, learning=learning, new=new)


def select_states(pools: SessionPools, quotas: SessionQuotas, size: int) -> list[ReviewState]:
    """Quota-bounded selection, then backfill in due, learning, new order."""
    ordered = [
        (pools.due, quotas.due),
        (pools.learning, quotas.learning),
        (pools.new, quotas.new),
    ]

    selected: list[ReviewState] = []
    leftovers: list[list[ReviewState]] = []
    for pool, quota in ordered:
        take = min(quota, len(pool), max(0, size - len(selected)))
        selected.extend(pool[:take])
        leftovers.append(pool[take:])

    for rest in leftovers:
        for state in rest:
            if len(selected) >= size:
                return selected
            selected.append(state)
    return selected


def compose_session(
    repo: VocabRepository,
    size: int,
    now: datetime,
    rng: random.Random | None = None,
    preferred_mode: QuizMode | None = None,
    due_ratio: float = DUE_RATIO,
    learning_ratio: float = LEARNING_RATIO,
) -> list[SessionItem]:
    """
    Build an ordered practice queue of up to ``size`` items.

    Args:
        repo: Storage port to read review states and cards from.
        size: Maximum number of items.
        now: Reference time for pool membership.
        rng: Seedable randomness for pool shuffling and mode choice.
        preferred_mode: Mode to use wherever the card supports it.

    Returns:
        Session items; empty when nothing is available.
    """
    if size <= 0:
        return []
    rng = rng or random.Random()

    pools = build_pools(repo, now, rng)
    quotas = SessionQuotas.for_size(size, due_ratio, learning_ratio)
    selected = select_states(pools, quotas, size)
    logger.debug(
        f"Pools due={len(pools.due)} learning={len(pools.learning)} new={len(pools.new)}; "
        f"quotas {quotas}; selected {len(selected)}"
    )

    items: list[SessionItem] = []
    for state, (card_id, card) in zip(
        selected, repo.iter_cards(s.card_id for s in selected), strict=True
    ):
        if card is None:
            logger.warning(f"Review state {card_id} has no card, left out of session")
            continue
        items.append(SessionItem(card=card, state=state, mode=assign_mode(card, rng, preferred_mode)))
    return items


@dataclass
class SessionSummary:
    attempted: int
    correct: int
    accuracy: int  # percent
    remaining: int


class StudySession:
    """
    Live queue for one learner sitting.

    Owns the in-memory queue; abandoning the object discards it. Only graded
    attempts are ever persisted. reveal, skip and grade are serialized so at
    most one question is in flight, even when callers share the session
    across threads.
    """

    def __init__(
        self,
        repo: VocabRepository,
        items: list[SessionItem],
        clock: Clock | None = None,
        speaker: SpeechPlayer | None = None,
        reinsert_offset: int = REINSERT_OFFSET,
    ):
        self._repo = repo
        self._clock = clock or utc_now
        self._speaker = speaker
        self._reinsert_offset = reinsert_offset
        self.queue: list[SessionItem] = list(items)
        self.cursor = 0
        self.revealed = False
        self.attempted = 0
        self.correct = 0
        self.mistakes: list[Card] = []
        self._lock = threading.Lock()

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.queue)

    def current(self) -> SessionItem | None:
        if self.finished:
            return None
        item = self.queue[self.cursor]
        if item.mode is QuizMode.LISTENING and self._speaker is not None:
            try:
                self._speaker.speak(item.card.term)
            except Exception as e:
                logger.warning(f"Speech playback failed for '{item.card.term}': {e}")
        return item

    def reveal(self) -> SessionItem:
        """Mark the current item's answer as revealed or submitted."""
        with self._lock:
            if self.finished:
                raise GradingPreconditionError("The session has no more items.")
            self.revealed = True
            return self.queue[self.cursor]

    def skip(self) -> None:
        """Move past the current item without grading it."""
        with self._lock:
            if not self.finished:
                self.cursor += 1
                self.revealed = False

    def grade(self, grade: Grade | str, latency: float) -> LogEntry:
        """
        Grade the current item, persist the outcome, and advance the queue.

        "again" reinserts the item a few positions ahead for short-term
        relearning; every other grade removes it for the rest of the session.

        Raises:
            GradingPreconditionError: No current item, or its answer was not revealed yet.
        """
        with self._lock:
            return self._grade(grade, latency)

    def _grade(self, grade: Grade | str, latency: float) -> LogEntry:
        if self.finished:
            raise GradingPreconditionError("The session has no more items.")
        if not self.revealed:
            raise GradingPreconditionError(
                "Reveal or submit an answer before grading this item."
            )

        grade = Grade(grade)
        item = self.queue[self.cursor]
        now = self._clock()
        is_correct = grade is not Grade.AGAIN

        state = update(item.state, grade, now)
        state = record_attempt(state, latency, is_correct)
        entry = LogEntry(
            timestamp=now,
            card_id=item.card.card_id,
            mode=item.mode,
            grade=grade,
            latency=latency,
            correct=is_correct,
            context={"position": self.cursor, "queue_length": len(self.queue)},
        )
        with self._repo.transaction():
            self._repo.put_review_state(state)
            self._repo.append_log(entry)

        self.revealed = False
        self.attempted += 1
        del self.queue[self.cursor]
        if is_correct:
            self.correct += 1
        else:
            self.mistakes.append(item.card)
            position = min(self.cursor + self._reinsert_offset, len(self.queue))
            self.queue.insert(position, replace(item, state=state))
        logger.debug(f"Graded {item.card.card_id} {grade.value}; next in {state.interval}d")
        return entry

    def summary(self) -> SessionSummary:
        accuracy = round_half_up(self.correct / self.attempted * 100) if self.attempted else 100
        return SessionSummary(
            attempted=self.attempted,
            correct=self.correct,
            accuracy=accuracy,
            remaining=len(self.queue) - self.cursor,
        )

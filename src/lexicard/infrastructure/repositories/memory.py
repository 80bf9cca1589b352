"""
In-memory, dict-backed implementation of VocabRepository.

Used by tests and by the ``memory`` backend. Stored objects are copied on the
way in and out so callers can never mutate state outside a transaction.
"""

import copy
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime

from lexicard.domain.models import Card, ImportBatchRecord, LogEntry, ReviewState
from lexicard.domain.ports import VocabRepository


class InMemoryRepository(VocabRepository):
    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._cards: dict[str, Card] = {}
        self._states: dict[str, ReviewState] = {}
        self._logs: list[LogEntry] = []
        self._batches: list[ImportBatchRecord] = []

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                # Nested block joins the outer transaction.
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            snapshot = (
                dict(self._cards),
                dict(self._states),
                list(self._logs),
                list(self._batches),
            )
            self._depth = 1
            try:
                yield
            except BaseException:
                self._cards, self._states, self._logs, self._batches = snapshot
                raise
            finally:
                self._depth = 0

    def get_card(self, card_id: str) -> Card | None:
        with self._lock:
            card = self._cards.get(card_id)
            return copy.deepcopy(card) if card else None

    def get_review_state(self, card_id: str) -> ReviewState | None:
        with self._lock:
            return self._states.get(card_id)

    def find_cards_by_normalized_terms(self, terms: Iterable[str]) -> list[Card]:
        wanted = set(terms)
        with self._lock:
            found = [c for c in self._cards.values() if c.normalized_term in wanted]
            found.sort(key=lambda c: (c.created_at, c.card_id))
            return copy.deepcopy(found)

    def list_review_states(self) -> list[ReviewState]:
        with self._lock:
            return list(self._states.values())

    def review_states_due(self, bound: datetime) -> list[ReviewState]:
        with self._lock:
            due = [s for s in self._states.values() if s.next_review <= bound]
        return sorted(due, key=lambda s: (s.next_review, s.card_id))

    def put_card(self, card: Card) -> None:
        with self._lock:
            self._cards[card.card_id] = copy.deepcopy(card)

    def put_review_state(self, state: ReviewState) -> None:
        # ReviewState is frozen; storing the instance itself is safe.
        with self._lock:
            self._states[state.card_id] = state

    def append_log(self, entry: LogEntry) -> None:
        with self._lock:
            self._logs.append(entry)

    def log_entries_since(self, since: datetime) -> list[LogEntry]:
        with self._lock:
            entries = [e for e in self._logs if e.timestamp >= since]
        return sorted(entries, key=lambda e: e.timestamp)

    def append_import_batch(self, record: ImportBatchRecord) -> None:
        with self._lock:
            self._batches.append(record)

    def list_import_batches(self) -> list[ImportBatchRecord]:
        with self._lock:
            return list(self._batches)

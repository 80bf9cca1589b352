"""
Ports (interfaces) for storage and optional capabilities.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from contextlib import AbstractContextManager
from datetime import datetime, timezone

from .models import Card, ImportBatchRecord, LogEntry, ReviewState

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware UTC wall time."""
    return datetime.now(timezone.utc)


class VocabRepository(ABC):
    """
    Port for durable vocabulary state.

    Implementations:
        - InMemoryRepository: Dict-backed store for tests and throwaway sessions.
        - SqliteRepository: Single-file SQLite database.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """
        Exclusive, atomic section.

        Writes made inside the block are committed together when it exits
        normally and discarded if it raises. Nested blocks join the outer one.
        """

    @abstractmethod
    def get_card(self, card_id: str) -> Card | None:
        pass

    @abstractmethod
    def get_review_state(self, card_id: str) -> ReviewState | None:
        pass

    @abstractmethod
    def find_cards_by_normalized_terms(self, terms: Iterable[str]) -> list[Card]:
        """
        Fetch all cards whose normalized term is in ``terms``.

        Returns:
            Cards ordered by creation time, oldest first.
        """

    @abstractmethod
    def list_review_states(self) -> list[ReviewState]:
        pass

    @abstractmethod
    def review_states_due(self, bound: datetime) -> list[ReviewState]:
        """
        Range query: review states with ``next_review <= bound``.

        Returns:
            States sorted by next_review ascending (most overdue first).
        """

    @abstractmethod
    def put_card(self, card: Card) -> None:
        pass

    @abstractmethod
    def put_review_state(self, state: ReviewState) -> None:
        pass

    @abstractmethod
    def append_log(self, entry: LogEntry) -> None:
        pass

    @abstractmethod
    def log_entries_since(self, since: datetime) -> list[LogEntry]:
        """Log entries with ``timestamp >= since``, oldest first."""

    @abstractmethod
    def append_import_batch(self, record: ImportBatchRecord) -> None:
        pass

    @abstractmethod
    def list_import_batches(self) -> list[ImportBatchRecord]:
        pass

    def iter_cards(self, card_ids: Iterable[str]) -> Iterator[tuple[str, Card | None]]:
        for card_id in card_ids:
            yield card_id, self.get_card(card_id)


class ContentHasher(ABC):
    """Optional capability: fingerprint raw import content for provenance."""

    @abstractmethod
    def hexdigest(self, data: bytes) -> str:
        pass


class SpeechPlayer(ABC):
    """Optional capability: read a term aloud for listening drills."""

    @abstractmethod
    def speak(self, text: str) -> None:
        pass

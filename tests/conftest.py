import random
from datetime import datetime, timedelta, timezone

import pytest

from lexicard.domain.models import Card, ReviewState
from lexicard.infrastructure.repositories import InMemoryRepository, SqliteRepository

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Fixed clock at NOW."""
    return lambda: NOW


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def sqlite_repo(tmp_path):
    with SqliteRepository(tmp_path / "lexicard.db") as r:
        yield r


@pytest.fixture
def add_card():
    """Store a card plus review state; keyword args override ReviewState fields."""

    def _add(repo, card_id, term="word", translation="词", phonetic=None, **state_fields):
        card = Card(
            card_id=card_id,
            term=term,
            normalized_term=term.lower(),
            translation=translation,
            translation_digest=translation or "",
            phonetic=phonetic,
            created_at=NOW - timedelta(days=30),
            updated_at=NOW - timedelta(days=30),
        )
        state_fields.setdefault("next_review", NOW)
        state = ReviewState(card_id=card_id, **state_fields)
        repo.put_card(card)
        repo.put_review_state(state)
        return card, state

    return _add


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir and isolates LEXICARD_* settings."""
    home = tmp_path / "home"
    home.mkdir()

    monkeypatch.setenv("HOME", str(home))
    for var in ("LEXICARD_BACKEND", "LEXICARD_DB_PATH", "LEXICARD_SEED", "LEXICARD_SESSION_SIZE"):
        monkeypatch.delenv(var, raising=False)
    return home

"""
SQLite repository: single-file implementation of VocabRepository.

Tags, metrics and log context are stored as JSON text; timestamps as ISO 8601
strings in UTC so lexical order matches chronological order.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from lexicard.domain.errors import StorageError
from lexicard.domain.models import (
    Card,
    Grade,
    ImportBatchRecord,
    LogEntry,
    QuizMode,
    ReviewState,
)
from lexicard.domain.ports import VocabRepository

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cards (
    card_id TEXT PRIMARY KEY,
    term TEXT NOT NULL,
    normalized_term TEXT NOT NULL,
    translation TEXT,
    translation_digest TEXT NOT NULL DEFAULT '',
    phonetic TEXT,
    tags TEXT NOT NULL DEFAULT '[]',
    source_batch TEXT,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cards_normalized_term ON cards (normalized_term);

CREATE TABLE IF NOT EXISTS review_states (
    card_id TEXT PRIMARY KEY REFERENCES cards (card_id),
    ease REAL NOT NULL,
    interval INTEGER NOT NULL,
    reps INTEGER NOT NULL,
    lapses INTEGER NOT NULL,
    last_review TEXT,
    next_review TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    correct INTEGER NOT NULL DEFAULT 0,
    avg_latency REAL NOT NULL DEFAULT 0,
    metrics TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_review_states_next_review ON review_states (next_review);

CREATE TABLE IF NOT EXISTS log_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    card_id TEXT NOT NULL,
    mode TEXT NOT NULL,
    grade TEXT NOT NULL,
    latency REAL NOT NULL,
    correct INTEGER NOT NULL,
    context TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_log_entries_timestamp ON log_entries (timestamp);

CREATE TABLE IF NOT EXISTS import_batches (
    batch_id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    new_count INTEGER NOT NULL,
    updated_count INTEGER NOT NULL,
    conflict_count INTEGER NOT NULL,
    skipped_count INTEGER NOT NULL,
    content_hash TEXT,
    notes TEXT
);
"""


def _ts(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _card_from_row(row: sqlite3.Row) -> Card:
    return Card(
        card_id=row["card_id"],
        term=row["term"],
        normalized_term=row["normalized_term"],
        translation=row["translation"],
        translation_digest=row["translation_digest"],
        phonetic=row["phonetic"],
        tags=json.loads(row["tags"]),
        source_batch=row["source_batch"],
        notes=row["notes"],
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def _state_from_row(row: sqlite3.Row) -> ReviewState:
    return ReviewState(
        card_id=row["card_id"],
        ease=row["ease"],
        interval=row["interval"],
        reps=row["reps"],
        lapses=row["lapses"],
        last_review=_dt(row["last_review"]),
        next_review=_dt(row["next_review"]),
        attempts=row["attempts"],
        correct=row["correct"],
        avg_latency=row["avg_latency"],
        metrics=json.loads(row["metrics"]),
    )


class SqliteRepository(VocabRepository):
    """
    Stores vocabulary state in a SQLite database file.

    Usable as a context manager; the connection is closed on exit.
    ``transaction()`` takes the database write lock up front (BEGIN IMMEDIATE)
    so a batch import cannot interleave with another writer.
    """

    def __init__(self, db_path: Path | str = ":memory:", timeout: float = 5.0):
        self.db_path = db_path
        self._lock = threading.RLock()
        self._depth = 0
        # Autocommit mode; transactions are opened explicitly.
        self._conn = sqlite3.connect(
            str(db_path), timeout=timeout, isolation_level=None, check_same_thread=False
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(SCHEMA)
        logger.debug(f"Opened SQLite repository at {db_path}")

    def __enter__(self) -> "SqliteRepository":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                # e.g. "database is locked" when another writer holds the lock
                raise StorageError(str(e)) from e
            self._depth = 1
            try:
                yield
            except BaseException:
                self._conn.rollback()
                raise
            else:
                try:
                    self._conn.commit()
                except sqlite3.OperationalError as e:
                    self._conn.rollback()
                    raise StorageError(str(e)) from e
            finally:
                self._depth = 0

    def _execute(self, sql: str, params: Iterable = ()) -> sqlite3.Cursor:
        try:
            with self._lock:
                return self._conn.execute(sql, tuple(params))
        except (sqlite3.IntegrityError, sqlite3.OperationalError) as e:
            raise StorageError(str(e)) from e

    def get_card(self, card_id: str) -> Card | None:
        row = self._execute("SELECT * FROM cards WHERE card_id = ?", (card_id,)).fetchone()
        return _card_from_row(row) if row else None

    def get_review_state(self, card_id: str) -> ReviewState | None:
        row = self._execute(
            "SELECT * FROM review_states WHERE card_id = ?", (card_id,)
        ).fetchone()
        return _state_from_row(row) if row else None

    def find_cards_by_normalized_terms(self, terms: Iterable[str]) -> list[Card]:
        terms = sorted(set(terms))
        if not terms:
            return []
        placeholders = ",".join("?" for _ in terms)
        rows = self._execute(
            f"SELECT * FROM cards WHERE normalized_term IN ({placeholders}) "
            f"ORDER BY created_at, card_id",
            terms,
        ).fetchall()
        return [_card_from_row(r) for r in rows]

    def list_review_states(self) -> list[ReviewState]:
        rows = self._execute("SELECT * FROM review_states ORDER BY card_id").fetchall()
        return [_state_from_row(r) for r in rows]

    def review_states_due(self, bound: datetime) -> list[ReviewState]:
        rows = self._execute(
            "SELECT * FROM review_states WHERE next_review <= ? ORDER BY next_review, card_id",
            (_ts(bound),),
        ).fetchall()
        return [_state_from_row(r) for r in rows]

    def put_card(self, card: Card) -> None:
        self._execute(
            """
            INSERT INTO cards (
                card_id, term, normalized_term, translation, translation_digest,
                phonetic, tags, source_batch, notes, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (card_id) DO UPDATE SET
                term = excluded.term,
                normalized_term = excluded.normalized_term,
                translation = excluded.translation,
                translation_digest = excluded.translation_digest,
                phonetic = excluded.phonetic,
                tags = excluded.tags,
                source_batch = excluded.source_batch,
                notes = excluded.notes,
                updated_at = excluded.updated_at
            """,
            (
                card.card_id,
                card.term,
                card.normalized_term,
                card.translation,
                card.translation_digest,
                card.phonetic,
                json.dumps(card.tags, ensure_ascii=False),
                card.source_batch,
                card.notes,
                _ts(card.created_at),
                _ts(card.updated_at),
            ),
        )

    def put_review_state(self, state: ReviewState) -> None:
        self._execute(
            """
            INSERT OR REPLACE INTO review_states (
                card_id, ease, interval, reps, lapses, last_review, next_review,
                attempts, correct, avg_latency, metrics
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                state.card_id,
                state.ease,
                state.interval,
                state.reps,
                state.lapses,
                _ts(state.last_review),
                _ts(state.next_review),
                state.attempts,
                state.correct,
                state.avg_latency,
                json.dumps(state.metrics),
            ),
        )

    def append_log(self, entry: LogEntry) -> None:
        self._execute(
            """
            INSERT INTO log_entries (timestamp, card_id, mode, grade, latency, correct, context)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                _ts(entry.timestamp),
                entry.card_id,
                entry.mode.value,
                entry.grade.value,
                entry.latency,
                int(entry.correct),
                json.dumps(entry.context, ensure_ascii=False),
            ),
        )

    def log_entries_since(self, since: datetime) -> list[LogEntry]:
        rows = self._execute(
            "SELECT * FROM log_entries WHERE timestamp >= ? ORDER BY timestamp, id",
            (_ts(since),),
        ).fetchall()
        return [
            LogEntry(
                timestamp=_dt(r["timestamp"]),
                card_id=r["card_id"],
                mode=QuizMode(r["mode"]),
                grade=Grade(r["grade"]),
                latency=r["latency"],
                correct=bool(r["correct"]),
                context=json.loads(r["context"]),
            )
            for r in rows
        ]

    def append_import_batch(self, record: ImportBatchRecord) -> None:
        self._execute(
            """
            INSERT INTO import_batches (
                batch_id, source, timestamp, new_count, updated_count,
                conflict_count, skipped_count, content_hash, notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.batch_id,
                record.source,
                _ts(record.timestamp),
                record.new_count,
                record.updated_count,
                record.conflict_count,
                record.skipped_count,
                record.content_hash,
                record.notes,
            ),
        )

    def list_import_batches(self) -> list[ImportBatchRecord]:
        rows = self._execute("SELECT * FROM import_batches ORDER BY timestamp").fetchall()
        return [
            ImportBatchRecord(
                batch_id=r["batch_id"],
                source=r["source"],
                timestamp=_dt(r["timestamp"]),
                new_count=r["new_count"],
                updated_count=r["updated_count"],
                conflict_count=r["conflict_count"],
                skipped_count=r["skipped_count"],
                content_hash=r["content_hash"],
                notes=r["notes"],
            )
            for r in rows
        ]

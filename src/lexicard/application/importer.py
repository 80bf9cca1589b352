"""
Deduplicating import pipeline.

Turns raw, inconsistently formatted rows into canonical Cards by:
1. Dropping empty and header-like rows
2. Merging rows that share a fingerprint within the batch
3. Reconciling the survivors against stored Cards (update, polysemy, or new)
4. Committing the whole batch in one repository transaction
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from lexicard.application.id_service import generate_batch_id, generate_card_id
from lexicard.application.normalizer import (
    canonical_term,
    canonical_translation,
    digest,
    merge_tags,
    parse_tags,
)
from lexicard.application.scheduler import new_review_state
from lexicard.domain.constants import (
    MAX_TAGS,
    NO_VALID_ROWS_WARNING,
    POLYSEMY_TAG,
    PREVIEW_LIMIT,
)
from lexicard.domain.errors import ImportFailure
from lexicard.domain.models import Card, ImportBatchRecord, ImportReport, RawRow
from lexicard.domain.ports import Clock, ContentHasher, VocabRepository, utc_now

logger = logging.getLogger(__name__)

_HEADER_TERM_RE = re.compile(r"\b(parcel|word|english|term)\b", re.IGNORECASE)
_HEADER_FIELD_RE = re.compile(r"中文|释义|meaning|IPA|音标", re.IGNORECASE)


def is_header_row(row: RawRow) -> bool:
    """Heuristic for a spreadsheet header line that slipped into the data rows."""
    if _HEADER_TERM_RE.search(row.term or ""):
        return True
    others = " ".join(v for v in (row.translation, row.phonetic, row.tags_raw) if v)
    return bool(_HEADER_FIELD_RE.search(others))


def _first_non_empty(*values: str | None) -> str | None:
    for v in values:
        if v and v.strip():
            return v.strip()
    return None


@dataclass
class _MergedRow:
    """Rows of one batch sharing a fingerprint, folded together."""

    term: str
    normalized_term: str
    digest: str
    translation: str | None
    phonetic: str | None
    notes: str | None
    tags: list[str] = field(default_factory=list)
    duplicates: int = 0

    @property
    def fingerprint(self) -> tuple[str, str]:
        return (self.normalized_term, self.digest)

    def absorb(self, row: RawRow) -> None:
        # Earliest row wins; later rows only fill gaps.
        self.translation = _first_non_empty(self.translation, canonical_translation(row.translation))
        self.phonetic = _first_non_empty(self.phonetic, row.phonetic)
        self.notes = _first_non_empty(self.notes, row.notes)
        self.tags = merge_tags(self.tags, parse_tags(row.tags_raw))
        self.duplicates += 1


def _with_polysemy_tag(tags: list[str]) -> list[str]:
    kept = [t for t in tags if t != POLYSEMY_TAG][: MAX_TAGS - 1]
    return kept + [POLYSEMY_TAG]


class ImportService:
    """
    Application service for importing vocabulary batches.

    Depends on the VocabRepository port; the clock and the optional content
    hasher are injected so tests can pin time and simulate missing capabilities.
    """

    def __init__(
        self,
        repo: VocabRepository,
        clock: Clock | None = None,
        hasher: ContentHasher | None = None,
        preview_limit: int = PREVIEW_LIMIT,
        id_factory: Callable[[], str] = generate_card_id,
    ):
        self._repo = repo
        self._clock = clock or utc_now
        self._hasher = hasher
        self._preview_limit = preview_limit
        self._new_id = id_factory

    def import_rows(
        self,
        rows: Iterable[RawRow],
        batch_label: str,
        content: bytes | None = None,
    ) -> ImportReport:
        """
        Import one batch of raw rows.

        Args:
            rows: Rows from an external format-specific parser, in source order.
            batch_label: Human-readable source label (file name, sheet, ...).
            content: Optional raw source bytes, hashed for provenance if a hasher is available.

        Returns:
            ImportReport with counts, a bounded preview and warnings.

        Raises:
            ImportFailure: The storage transaction failed; nothing was written.
        """
        report = ImportReport(batch_label=batch_label)
        valid_rows = self._filter_rows(rows, report)
        report.preview = valid_rows[: self._preview_limit]

        if not valid_rows:
            logger.info(f"Batch '{batch_label}': no valid rows ({report.skipped_count} skipped)")
            report.warnings.append(NO_VALID_ROWS_WARNING)
            return report

        groups = self._merge_within_batch(valid_rows)
        content_hash = self._hash_content(content)
        now = self._clock()
        batch_id = generate_batch_id()

        try:
            with self._repo.transaction():
                self._reconcile(groups, report, batch_id, now)
                self._repo.append_import_batch(
                    ImportBatchRecord(
                        batch_id=batch_id,
                        source=batch_label,
                        timestamp=now,
                        new_count=report.new_count,
                        updated_count=report.updated_count,
                        conflict_count=report.conflict_count,
                        skipped_count=report.skipped_count,
                        content_hash=content_hash,
                    )
                )
        except Exception as e:
            logger.error(f"Batch '{batch_label}' rolled back: {e}")
            raise ImportFailure(batch_label, str(e)) from e

        report.batch_id = batch_id
        logger.info(
            f"Batch '{batch_label}' imported: new={report.new_count} "
            f"updated={report.updated_count} conflict={report.conflict_count} "
            f"skipped={report.skipped_count}"
        )
        return report

    def _filter_rows(self, rows: Iterable[RawRow], report: ImportReport) -> list[RawRow]:
        valid: list[RawRow] = []
        for i, row in enumerate(rows):
            if not (row.term or "").strip() or not canonical_term(row.term):
                logger.debug(f"Row {i}: empty term, skipped")
                report.skipped_count += 1
            elif is_header_row(row):
                logger.debug(f"Row {i}: header-like row '{row.term}', skipped")
                report.skipped_count += 1
            else:
                valid.append(row)
        return valid

    def _merge_within_batch(self, rows: list[RawRow]) -> list[_MergedRow]:
        groups: dict[tuple[str, str], _MergedRow] = {}
        for row in rows:
            key = (canonical_term(row.term), digest(row.translation))
            if key in groups:
                groups[key].absorb(row)
                continue
            groups[key] = _MergedRow(
                term=row.term.strip(),
                normalized_term=key[0],
                digest=key[1],
                translation=canonical_translation(row.translation) or None,
                phonetic=_first_non_empty(row.phonetic),
                notes=_first_non_empty(row.notes),
                tags=parse_tags(row.tags_raw),
            )
        return list(groups.values())

    def _reconcile(
        self,
        groups: list[_MergedRow],
        report: ImportReport,
        batch_id: str,
        now: datetime,
    ) -> None:
        terms = {g.normalized_term for g in groups}
        existing = self._repo.find_cards_by_normalized_terms(terms)

        by_fingerprint: dict[tuple[str, str], Card] = {}
        for card in existing:
            by_fingerprint.setdefault(card.fingerprint, card)
        seen_terms = {card.normalized_term for card in existing}

        for group in groups:
            # Merged duplicates inside the batch count as updates of the first row.
            report.updated_count += group.duplicates

            match = by_fingerprint.get(group.fingerprint)
            if match is not None:
                self._update_card(match, group, now)
                report.updated_count += 1
                continue

            polysemous = group.normalized_term in seen_terms
            card = self._create_card(group, batch_id, now, polysemous)
            by_fingerprint[card.fingerprint] = card
            seen_terms.add(card.normalized_term)
            report.new_count += 1
            if polysemous:
                report.conflict_count += 1
                logger.debug(f"New sense for '{group.normalized_term}' ({group.digest})")

    def _update_card(self, card: Card, group: _MergedRow, now: datetime) -> None:
        card.tags = merge_tags(card.tags, group.tags)
        card.translation = card.translation or group.translation
        card.phonetic = card.phonetic or group.phonetic
        card.notes = card.notes or group.notes
        card.updated_at = now
        self._repo.put_card(card)

    def _create_card(
        self,
        group: _MergedRow,
        batch_id: str,
        now: datetime,
        polysemous: bool,
    ) -> Card:
        tags = _with_polysemy_tag(group.tags) if polysemous else group.tags
        card = Card(
            card_id=self._new_id(),
            term=group.term,
            normalized_term=group.normalized_term,
            translation=group.translation,
            translation_digest=group.digest,
            phonetic=group.phonetic,
            tags=tags,
            source_batch=batch_id,
            notes=group.notes,
            created_at=now,
            updated_at=now,
        )
        self._repo.put_card(card)
        self._repo.put_review_state(new_review_state(card.card_id, now))
        return card

    def _hash_content(self, content: bytes | None) -> str | None:
        if content is None or self._hasher is None:
            return None
        try:
            return self._hasher.hexdigest(content)
        except Exception as e:
            logger.warning(f"Content hashing unavailable, importing without provenance hash: {e}")
            return None

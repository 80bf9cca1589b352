"""Text normalization and fingerprinting for vocabulary rows.

Matching keys must be insensitive to spreadsheet noise (case, trailing
punctuation, spacing, accents, full-width forms) while staying recognizable
to a human reading the stored key.
"""

import re
import unicodedata as ud
from collections.abc import Iterable

from lexicard.domain.constants import MAX_DIGEST_LEN, MAX_TAGS, MAX_TRANSLATION_LEN

# \s covers U+3000 (ideographic space) for str patterns.
_WS_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[.,!?;:。，！？；：、…]+$")
_TERM_DISALLOWED_RE = re.compile(r"[^a-z0-9 '\-/]")
_DIGEST_DISALLOWED_RE = re.compile(r"[^\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaffa-z0-9]")
_TAG_SPLIT_RE = re.compile(r"[\s,;/，；／、]+")


def _collapse_ws(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def canonical_term(text: str | None) -> str:
    """
    Canonical matching form of a term.

    Steps: trim -> lowercase -> collapse whitespace -> strip trailing sentence
    punctuation -> NFKD -> lowercase -> drop anything outside
    ``[a-z0-9 '-/]`` -> collapse whitespace and trim.

    Idempotent: ``canonical_term(canonical_term(x)) == canonical_term(x)``.
    """
    if not text:
        return ""
    t = _collapse_ws(str(text).lower())
    t = _TRAILING_PUNCT_RE.sub("", t)
    # Compatibility forms (full-width letters, ligatures) can decompose to capitals.
    t = ud.normalize("NFKD", t).lower()
    t = _TERM_DISALLOWED_RE.sub("", t)
    return _collapse_ws(t)


def canonical_translation(text: str | None) -> str:
    if not text:
        return ""
    return _collapse_ws(str(text))[:MAX_TRANSLATION_LEN]


def digest(translation: str | None) -> str:
    """Truncated fingerprint of a translation: CJK ideographs and ASCII alphanumerics only."""
    t = canonical_translation(translation).lower()
    return _DIGEST_DISALLOWED_RE.sub("", t)[:MAX_DIGEST_LEN]


def fingerprint(term: str | None, translation: str | None) -> tuple[str, str]:
    return (canonical_term(term), digest(translation))


def merge_tags(*groups: Iterable[str]) -> list[str]:
    """Ordered union of tag groups, first-seen wins, capped at MAX_TAGS."""
    merged: list[str] = []
    for group in groups:
        for tag in group:
            if tag and tag not in merged:
                merged.append(tag)
    return merged[:MAX_TAGS]


def parse_tags(raw: str | None) -> list[str]:
    """Split a free-text tag cell on whitespace, comma, semicolon or slash."""
    if not raw:
        return []
    parts = (p.strip() for p in _TAG_SPLIT_RE.split(str(raw)))
    return merge_tags(p for p in parts if p)

"""
Row file loader for the CLI and API.

Reads a YAML (or JSON) list of mappings into RawRows. Column aliases from
common spreadsheet exports are accepted: ``cn`` for translation, ``ipa`` for
phonetic, ``tags`` for the raw tag cell.
"""

from pathlib import Path
from typing import Any

import yaml

from lexicard.domain.models import RawRow

_ALIASES = {
    "term": ("term", "word", "english"),
    "translation": ("translation", "cn", "meaning"),
    "phonetic": ("phonetic", "ipa"),
    "tags_raw": ("tags_raw", "tags"),
    "notes": ("notes", "note"),
}


def _pick(data: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, list):
            return " ".join(str(v) for v in value)
        return str(value)
    return None


def row_from_mapping(data: dict[str, Any]) -> RawRow:
    values = {field: _pick(data, keys) for field, keys in _ALIASES.items()}
    values["term"] = values["term"] or ""
    return RawRow(**values)


def parse_rows(text: str) -> list[RawRow]:
    """
    Parse YAML/JSON text into rows.

    Accepts either a top-level list or a mapping with a ``rows`` list. Entries
    that are plain strings become term-only rows.
    """
    data = yaml.safe_load(text) or []
    if isinstance(data, dict):
        data = data.get("rows", [])
    if not isinstance(data, list):
        raise ValueError("Row file must contain a list of rows")

    rows = []
    for item in data:
        if isinstance(item, dict):
            rows.append(row_from_mapping(item))
        elif item is not None:
            rows.append(RawRow(term=str(item)))
    return rows


def load_rows(path: Path) -> tuple[list[RawRow], bytes]:
    """Return the parsed rows and the raw file bytes (for provenance hashing)."""
    content = path.read_bytes()
    return parse_rows(content.decode("utf-8")), content

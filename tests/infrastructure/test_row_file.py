import pytest

from lexicard.domain.models import RawRow
from lexicard.infrastructure.row_file import load_rows, parse_rows, row_from_mapping


def test_parse_list_of_mappings():
    rows = parse_rows(
        """
- term: till
  translation: 直到
  phonetic: /tɪl/
  tags: prep conj
- word: yacht
  cn: 游艇
"""
    )
    assert rows == [
        RawRow(term="till", translation="直到", phonetic="/tɪl/", tags_raw="prep conj"),
        RawRow(term="yacht", translation="游艇"),
    ]


def test_parse_rows_key_and_plain_strings():
    rows = parse_rows("rows:\n  - prudent\n  - {english: rival, meaning: 对手}\n")
    assert rows == [RawRow(term="prudent"), RawRow(term="rival", translation="对手")]


def test_parse_json_text():
    rows = parse_rows('[{"term": "queue", "ipa": "/kjuː/", "tags": ["noun", "verb"]}]')
    assert rows == [RawRow(term="queue", phonetic="/kjuː/", tags_raw="noun verb")]


def test_empty_document_gives_no_rows():
    assert parse_rows("") == []


def test_non_list_document_is_rejected():
    with pytest.raises(ValueError):
        parse_rows("just a sentence")


def test_missing_term_becomes_empty_string():
    assert row_from_mapping({"translation": "直到"}).term == ""


def test_numbers_are_stringified():
    assert row_from_mapping({"term": 404, "notes": 1.5}) == RawRow(term="404", notes="1.5")


def test_load_rows_returns_content(tmp_path):
    path = tmp_path / "batch.yaml"
    path.write_text("- term: drill\n  cn: 操练\n", encoding="utf-8")

    rows, content = load_rows(path)

    assert rows == [RawRow(term="drill", translation="操练")]
    assert content == path.read_bytes()

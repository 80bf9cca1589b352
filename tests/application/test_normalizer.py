"""Tests for lexicard.application.normalizer."""

import pytest

from lexicard.application.normalizer import (
    canonical_term,
    canonical_translation,
    digest,
    fingerprint,
    merge_tags,
    parse_tags,
)

# ---------- canonical_term ----------


def test_padding_and_trailing_period_canonicalize_the_same():
    assert canonical_term("  Queue  ") == "queue"
    assert canonical_term("queue.") == "queue"


def test_full_width_space_collapses():
    assert canonical_term("cable　　car") == "cable car"
    assert canonical_term("game \t\n console") == "game console"


def test_accents_are_stripped():
    assert canonical_term("Café") == "cafe"
    assert canonical_term("naïve") == "naive"


def test_full_width_letters_fold_to_ascii():
    assert canonical_term("ＱＵＥＵＥ") == "queue"


def test_allowed_punctuation_survives():
    assert canonical_term("don't") == "don't"
    assert canonical_term("Well-Known") == "well-known"
    assert canonical_term("and/or") == "and/or"


def test_trailing_sentence_punctuation_stripped():
    assert canonical_term("hello!") == "hello"
    assert canonical_term("till。") == "till"
    assert canonical_term("really?!") == "really"


def test_disallowed_characters_dropped():
    assert canonical_term("soak (up)") == "soak up"
    assert canonical_term("直到") == ""


def test_empty_inputs():
    assert canonical_term("") == ""
    assert canonical_term(None) == ""
    assert canonical_term("   ") == ""


@pytest.mark.parametrize(
    "raw",
    [
        "  Queue  ",
        "queue.",
        "One out of five：指在一个满分或总数为五的系统里，得到了“一”。",
        "a 中 b",
        "ＡＢＣ ｄｅｆ！",
        "ﬁne-tune / re-Use…",
        "Ⅻ apostles'",
        "",
    ],
)
def test_canonical_term_is_idempotent(raw):
    once = canonical_term(raw)
    assert canonical_term(once) == once


def test_dropped_characters_do_not_leave_double_spaces():
    assert canonical_term("a 中 b") == "a b"


# ---------- translation / digest ----------


def test_canonical_translation_collapses_and_truncates():
    assert canonical_translation("  有争议的   话题 ") == "有争议的 话题"
    assert len(canonical_translation("x" * 500)) == 120
    assert canonical_translation(None) == ""


def test_digest_keeps_cjk_and_alphanumerics():
    assert digest("直到、收银台") == "直到收银台"
    assert digest("队列；排队；（v.）排队") == "队列排队v排队"
    assert digest("Cash Register 2") == "cashregister2"


def test_digest_truncates_and_handles_empty():
    assert len(digest("字" * 100)) == 40
    assert digest("") == ""
    assert digest(None) == ""
    assert digest("；。、") == ""


def test_fingerprint_pairs_term_and_digest():
    assert fingerprint("Till", "直到") == ("till", "直到")
    assert fingerprint("till.", " 直到 ") == fingerprint("TILL", "直到")


# ---------- tags ----------


def test_parse_tags_splits_on_separators():
    assert parse_tags("verb, noun;travel/food  slang") == [
        "verb",
        "noun",
        "travel",
        "food",
        "slang",
    ]


def test_parse_tags_dedupes_preserving_order():
    assert parse_tags("b a b c a") == ["b", "a", "c"]


def test_parse_tags_caps_at_ten():
    raw = " ".join(f"t{i}" for i in range(15))
    assert parse_tags(raw) == [f"t{i}" for i in range(10)]


def test_parse_tags_empty():
    assert parse_tags(None) == []
    assert parse_tags(" ,;/ ") == []


def test_merge_tags_union():
    assert merge_tags(["a", "b"], ["b", "c"]) == ["a", "b", "c"]

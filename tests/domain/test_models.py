from lexicard.domain.errors import ImportFailure, LexicardError
from lexicard.domain.models import Card, Grade, ImportReport, QuizMode


def test_grade_quality_scale():
    assert [g.quality for g in Grade] == [0, 3, 4, 5]
    assert Grade("again") is Grade.AGAIN


def test_quiz_mode_values():
    assert QuizMode("eng2cn") is QuizMode.ENG_TO_TRANSLATION
    assert {m.value for m in QuizMode} == {"eng2cn", "cn2eng", "listening", "ipa"}


def test_card_fingerprint(now):
    card = Card(
        card_id="c1",
        term="Till",
        normalized_term="till",
        translation="直到",
        translation_digest="直到",
        created_at=now,
        updated_at=now,
    )
    assert card.fingerprint == ("till", "直到")
    assert card.tags == []


def test_import_report_defaults():
    report = ImportReport(batch_label="8.28")
    assert (report.new_count, report.updated_count, report.conflict_count, report.skipped_count) == (
        0,
        0,
        0,
        0,
    )
    assert report.batch_id is None


def test_import_failure_message():
    err = ImportFailure("8.28", "disk full")
    assert isinstance(err, LexicardError)
    assert err.batch_label == "8.28"
    assert "8.28" in str(err) and "disk full" in str(err)

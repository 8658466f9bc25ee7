# tests/test_name_similarity.py
import pytest

from attendance_monitor.services.name_similarity import (
    abbreviation_boost,
    confidence_level,
    containment_score,
    edit_similarity,
    name_similarity,
    normalize_name,
    participant_similarity,
    token_similarity,
)


def test_normalize_strips_case_accents_and_punctuation():
    assert normalize_name("  José-María D'Angelo. ") == "josemaria dangelo"


def test_normalize_is_idempotent():
    once = normalize_name("Ñandú Pérez (Ospite)")
    assert normalize_name(once) == once


def test_identical_after_normalization_scores_one():
    assert name_similarity("José Rossi", "jose rossi.") == 1.0


def test_initial_of_first_name_scores_high():
    score = name_similarity("G. Santambrogio", "Giorgio Santambrogio")

    assert score == pytest.approx(0.81)
    assert confidence_level(score) == "high"


def test_unrelated_names_score_low():
    assert name_similarity("Maria Verdi", "Luca Bianchi") < 0.55


@pytest.mark.parametrize(
    "a, b",
    [
        ("G. Santambrogio", "Giorgio Santambrogio"),
        ("Mario Rossi", "Mario"),
        ("Anna Maria Neri", "Neri Anna"),
        ("Luca Bianchi", "Luca B."),
    ],
)
def test_similarity_is_symmetric(a, b):
    assert name_similarity(a, b) == pytest.approx(name_similarity(b, a))


def test_scores_stay_within_bounds():
    for a, b in [("A", "Anna Bianchi Carla"), ("a b c", "anna bruno carla"), ("x", "")]:
        assert 0.0 <= name_similarity(a, b) <= 1.0


def test_literal_substring_containment():
    assert containment_score("mario", "mario rossi") == pytest.approx(5 / 11)


def test_token_containment_uses_larger_token_count():
    # "neri" and "anna" both found, three tokens on the larger side
    assert containment_score("neri anna", "anna maria neri") == pytest.approx(2 / 3)


def test_edit_similarity():
    assert edit_similarity("", "") == 1.0
    assert edit_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)


def test_token_similarity_edge_cases():
    assert token_similarity("", "") == 1.0
    assert token_similarity("anna", "") == 0.0
    assert token_similarity("anna neri", "neri anna") == 1.0
    assert token_similarity("anna neri", "anna rossi") == pytest.approx(1 / 3)


def test_abbreviation_boost_values():
    assert abbreviation_boost("g santambrogio", "giorgio santambrogio") == pytest.approx(0.10)
    assert abbreviation_boost("gs", "giorgio") == pytest.approx(0.08)
    assert abbreviation_boost("mario rossi", "luca bianchi") == 0.0


def test_abbreviation_boost_is_capped():
    assert abbreviation_boost("a b c", "anna bruno carla") == pytest.approx(0.20)


def test_shared_email_raises_score():
    score = participant_similarity("Maria V.", " Maria.Verdi@Test.it ", "M. Verdi", "maria.verdi@test.it")
    assert score >= 0.95


def test_empty_emails_do_not_match():
    assert participant_similarity("Maria Verdi", "", "Luca Bianchi", "") < 0.55


def test_confidence_tiers():
    assert confidence_level(0.80) == "high"
    assert confidence_level(0.79) == "medium"
    assert confidence_level(0.65) == "medium"
    assert confidence_level(0.6499) == "low"

"""Scoring function tests — normalisation, rounding and status bands."""

from fractions import Fraction

import pytest

from trias_assessment.models.session import Answer, ResultStatus
from trias_assessment.scoring import (
    classify_status,
    normalize_answers,
    round_half_up,
    score_session,
    score_theme,
)

from test_engine import make_catalog, make_question


def answers(**options):
    return [Answer(question_id=qid, selected_option=opt) for qid, opt in options.items()]


# =====================================================================
# Status bands
# =====================================================================


class TestClassifyStatus:
    """Thresholds compare the pre-rounding value, lower bound inclusive."""

    @pytest.mark.parametrize(
        "normalized, expected",
        [
            (100, ResultStatus.NORMAL),
            (75.0, ResultStatus.NORMAL),
            (74.9, ResultStatus.MILD),
            (50.0, ResultStatus.MILD),
            (49.9, ResultStatus.MODERATE),
            (25.0, ResultStatus.MODERATE),
            (24.9, ResultStatus.SEVERE),
            (0, ResultStatus.SEVERE),
        ],
    )
    def test_boundaries(self, normalized, expected):
        assert classify_status(normalized) == expected, (
            f"{normalized} should be {expected.value}"
        )

    def test_status_uses_unrounded_value(self):
        """74.6 rounds to a score of 75 but is still 'mild'."""
        questions = [make_question("q1", "T", 1, option_count=1001)]
        result = score_theme("T", questions, answers(q1=746))
        assert result.score == 75, "Score is rounded"
        assert result.status == ResultStatus.MILD, "Status is computed before rounding"


# =====================================================================
# Normalisation and rounding
# =====================================================================


class TestScoreTheme:
    """score_theme over a theme's questions and answers."""

    @pytest.fixture
    def questions(self):
        return [make_question(f"q{i}", "T", i) for i in range(1, 5)]

    def test_average_of_present_answers_only(self, questions):
        """Missing questions are ignored, not counted as zero."""
        result = score_theme("T", questions, answers(q1=4, q2=2))
        assert result.score == 75, f"(4+2)/2/4*100 = 75, got {result.score}"
        assert result.status == ResultStatus.NORMAL

    def test_no_answers_is_skipped(self, questions):
        assert score_theme("T", questions, []) is None, "Unanswered theme yields no result"

    def test_foreign_answers_are_ignored(self, questions):
        assert score_theme("T", questions, answers(other=4)) is None

    def test_exact_thresholds_from_answers(self, questions):
        """Averages landing exactly on a band edge take the upper band."""
        assert score_theme("T", questions, answers(q1=3)).status == ResultStatus.NORMAL
        assert score_theme("T", questions, answers(q1=2)).status == ResultStatus.MILD
        assert score_theme("T", questions, answers(q1=1)).status == ResultStatus.MODERATE
        assert score_theme("T", questions, answers(q1=0)).status == ResultStatus.SEVERE

    def test_half_rounds_up(self, questions):
        """An average of 0.5 is 12.5 and rounds to 13."""
        result = score_theme("T", questions, answers(q1=1, q2=0))
        assert result.score == 13, f"Expected 13, got {result.score}"
        assert result.status == ResultStatus.SEVERE

    def test_deterministic(self, questions):
        given = answers(q1=3, q2=1, q3=4)
        assert score_theme("T", questions, given) == score_theme("T", questions, given)

    def test_mixed_option_counts_normalise_per_question(self):
        """A 3-option answer of 2 and a 5-option answer of 4 are both 100%."""
        questions = [
            make_question("q1", "T", 1, option_count=3),
            make_question("q2", "T", 2, option_count=5),
        ]
        assert normalize_answers(questions, answers(q1=2, q2=4)) == 100
        assert normalize_answers(questions, answers(q1=1, q2=0)) == 25


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value, expected",
        [(Fraction(25, 2), 13), (Fraction(49, 2), 25), (12.4, 12), (0, 0), (100, 100)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestScoreSession:
    def test_results_in_catalog_order(self):
        catalog = make_catalog({"A": 2, "B": 2, "C": 1})
        results = score_session(catalog, answers(C1=4, A1=0))
        assert [r.theme_id for r in results] == ["A", "C"], "Catalog order, B skipped"

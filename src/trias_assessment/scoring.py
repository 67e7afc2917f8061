"""Theme scoring — answers for one theme to a 0-100 score and a status.

Pure functions, no I/O.  Arithmetic is done with :class:`fractions.Fraction`
so the status thresholds are compared exactly: an average that lands on
75 is ``normal``, never ``mild`` because of a float rounding artefact.

Each answer is normalised by its own question's ``option_count - 1`` before
averaging.  For a uniform 5-option scale this equals the plain
``(average / 4) * 100``; it also stays correct if a catalog ever mixes
scales.
"""

from __future__ import annotations

import math
from fractions import Fraction
from typing import Iterable, Sequence

from trias_assessment.constants import LOWEST_STATUS, STATUS_THRESHOLDS
from trias_assessment.models.catalog import Question
from trias_assessment.models.session import Answer, Result, ResultStatus


def classify_status(normalized: float | Fraction) -> ResultStatus:
    """Map a pre-rounding normalised score to its status band.

    Bands are half-open with an inclusive lower bound: 75 is ``normal``,
    74.9 is ``mild``.
    """
    for lower_bound, status in STATUS_THRESHOLDS:
        if normalized >= lower_bound:
            return ResultStatus(status)
    return ResultStatus(LOWEST_STATUS)


def round_half_up(value: Fraction | float) -> int:
    """Round to the nearest integer, halves away from zero (12.5 -> 13)."""
    return math.floor(Fraction(value) + Fraction(1, 2))


def normalize_answers(
    questions: Sequence[Question], answers: Iterable[Answer]
) -> Fraction | None:
    """Average the theme's answers on a 0-100 scale.

    Only answers whose ``question_id`` belongs to ``questions`` count.
    Missing questions are ignored, never filled with 0.  Returns ``None``
    if no answer belongs to the theme.
    """
    by_id = {q.id: q for q in questions}
    total = Fraction(0)
    count = 0
    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            continue
        total += Fraction(answer.selected_option, question.option_count - 1)
        count += 1
    if count == 0:
        return None
    return total / count * 100


def score_theme(
    theme_id: str, questions: Sequence[Question], answers: Iterable[Answer]
) -> Result | None:
    """Score one theme.  ``None`` means the theme was skipped (no answers)."""
    normalized = normalize_answers(questions, answers)
    if normalized is None:
        return None
    return Result(
        theme_id=theme_id,
        score=round_half_up(normalized),
        status=classify_status(normalized),
    )


def score_session(catalog, answers: Iterable[Answer]) -> list[Result]:
    """Score every theme of *catalog*, in catalog order, skipping unanswered ones."""
    answers = list(answers)
    results: list[Result] = []
    for theme in catalog.themes:
        result = score_theme(theme.id, catalog.questions_for_theme(theme.id), answers)
        if result is not None:
            results.append(result)
    return results

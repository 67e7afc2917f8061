"""ORM models for trias_db."""

from trias_db.models.assessment import AnswerRow, AssessmentRow, ResultRow
from trias_db.models.base import Base
from trias_db.models.catalog import QuestionRow, ThemeRow

__all__ = ["Base", "ThemeRow", "QuestionRow", "AssessmentRow", "AnswerRow", "ResultRow"]

"""Assessment tables — one session row plus its answers and results.

Answers and results are separate tables with unique constraints on
``(assessment_id, question_id)`` and ``(assessment_id, theme_id)``; these
are the keys that make the synchronizer's upserts idempotent.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from trias_db.models.base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AssessmentRow(Base):
    """One row per assessment session.

    A user may have many sessions over time; the most recent completed one
    is what the results screen shows.
    """

    __tablename__ = "assessments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    __table_args__ = (
        # Completed sessions must record when they finished
        CheckConstraint(
            "completed = false OR completed_at IS NOT NULL",
            name="ck_completed_has_timestamp",
        ),
        # Latest-completed lookup per user
        Index("ix_assessments_user_completed", "user_id", "completed", "completed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AssessmentRow(id={self.id!s}, user={self.user_id!r}, "
            f"completed={self.completed})>"
        )


class AnswerRow(Base):
    __tablename__ = "answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False,
    )
    question_id: Mapped[str] = mapped_column(Text, ForeignKey("questions.id"), nullable=False)
    selected_option: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now,
    )

    __table_args__ = (
        UniqueConstraint("assessment_id", "question_id", name="uq_answer_per_question"),
        CheckConstraint("selected_option >= 0", name="ck_option_non_negative"),
    )


class ResultRow(Base):
    __tablename__ = "results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False,
    )
    theme_id: Mapped[str] = mapped_column(Text, ForeignKey("themes.id"), nullable=False)
    score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    __table_args__ = (
        UniqueConstraint("assessment_id", "theme_id", name="uq_result_per_theme"),
        CheckConstraint("score BETWEEN 0 AND 100", name="ck_score_range"),
        CheckConstraint(
            "status IN ('normal', 'mild', 'moderate', 'severe')",
            name="ck_status_values",
        ),
    )

    def to_record(self) -> dict:
        return {"theme_id": self.theme_id, "score": self.score, "status": self.status}

"""Async CRUD repository for the catalog and assessment tables.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods call ``flush()`` but never ``commit()``.

No business-logic validation happens here.  Answer and result upserts are
single ``INSERT ... ON CONFLICT DO UPDATE`` statements on
``(assessment_id, question_id)`` and ``(assessment_id, theme_id)``, so two
concurrent writes of the same key leave exactly one row holding the value
written last.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from trias_db.models.assessment import AnswerRow, AssessmentRow, ResultRow
from trias_db.models.catalog import QuestionRow, ThemeRow

# Dialects with an INSERT ... ON CONFLICT construct
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _upsert_insert(db: AsyncSession, model):
    """Dialect-specific ``insert(model)`` supporting ``on_conflict_do_update``."""
    dialect = db.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect](model)
    except KeyError:
        raise NotImplementedError(f"upserts are not supported on {dialect!r}") from None


class AssessmentRepository:
    """Async read/write operations on the trias tables."""

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def list_themes(self, db: AsyncSession) -> list[ThemeRow]:
        stmt = select(ThemeRow).order_by(ThemeRow.sort_order, ThemeRow.id)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def list_questions(self, db: AsyncSession) -> list[QuestionRow]:
        stmt = select(QuestionRow).order_by(QuestionRow.theme_id, QuestionRow.position)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def save_theme(self, db: AsyncSession, row: ThemeRow) -> ThemeRow:
        """Insert or replace a theme by primary key."""
        merged = await db.merge(row)
        await db.flush()
        return merged

    async def save_question(self, db: AsyncSession, row: QuestionRow) -> QuestionRow:
        """Insert or replace a question by primary key."""
        merged = await db.merge(row)
        await db.flush()
        return merged

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    async def create_assessment(self, db: AsyncSession, *, user_id: str) -> AssessmentRow:
        """Insert a new, unfinished assessment row and return it."""
        row = AssessmentRow(user_id=user_id, completed=False)
        db.add(row)
        await db.flush()  # Populate id and created_at
        return row

    async def get_assessment(
        self, db: AsyncSession, assessment_id: uuid.UUID
    ) -> AssessmentRow | None:
        return await db.get(AssessmentRow, assessment_id)

    async def get_latest_completed(
        self, db: AsyncSession, user_id: str
    ) -> AssessmentRow | None:
        """Return the user's most recently completed assessment, if any."""
        stmt = (
            select(AssessmentRow)
            .where(
                AssessmentRow.user_id == user_id,
                AssessmentRow.completed.is_(True),
            )
            .order_by(AssessmentRow.completed_at.desc(), AssessmentRow.created_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_complete(
        self, db: AsyncSession, row: AssessmentRow, completed_at: datetime
    ) -> AssessmentRow:
        row.completed = True
        row.completed_at = completed_at
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Answers & results
    # ------------------------------------------------------------------

    async def upsert_answer(
        self,
        db: AsyncSession,
        *,
        assessment_id: uuid.UUID,
        question_id: str,
        selected_option: int,
    ) -> None:
        stmt = _upsert_insert(db, AnswerRow).values(
            assessment_id=assessment_id,
            question_id=question_id,
            selected_option=selected_option,
            answered_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["assessment_id", "question_id"],
            set_={
                "selected_option": stmt.excluded.selected_option,
                "answered_at": stmt.excluded.answered_at,
            },
        )
        await db.execute(stmt)
        await db.flush()

    async def list_answers(
        self, db: AsyncSession, assessment_id: uuid.UUID
    ) -> list[AnswerRow]:
        stmt = (
            select(AnswerRow)
            .where(AnswerRow.assessment_id == assessment_id)
            .order_by(AnswerRow.id)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def upsert_result(
        self,
        db: AsyncSession,
        *,
        assessment_id: uuid.UUID,
        theme_id: str,
        score: int,
        status: str,
    ) -> None:
        stmt = _upsert_insert(db, ResultRow).values(
            assessment_id=assessment_id,
            theme_id=theme_id,
            score=score,
            status=status,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["assessment_id", "theme_id"],
            set_={"score": stmt.excluded.score, "status": stmt.excluded.status},
        )
        await db.execute(stmt)
        await db.flush()

    async def list_results(
        self, db: AsyncSession, assessment_id: uuid.UUID
    ) -> list[ResultRow]:
        stmt = (
            select(ResultRow)
            .where(ResultRow.assessment_id == assessment_id)
            .order_by(ResultRow.id)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

"""SqlSynchronizer — the remote store of record, backed by SQLAlchemy.

Implements :class:`trias_assessment.interfaces.RemoteSynchronizer`.  Each
operation opens its own session, commits on success, and rolls back on
error.  Database failures are wrapped into ``SynchronizerError`` so the
engine never sees driver-specific exceptions.  Rows are mapped onto domain
models here, through the SDK's validating mappers.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trias_assessment.catalog import Catalog
from trias_assessment.errors import ErrorReason, SynchronizerError
from trias_assessment.interfaces import RemoteSynchronizer
from trias_assessment.models.session import CompletedSession, Result

from trias_db.engine import get_session_factory
from trias_db.models.catalog import QuestionRow, ThemeRow
from trias_db.repository import AssessmentRepository

logger = logging.getLogger(__name__)


def _parse_session_id(operation: str, session_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(session_id))
    except ValueError:
        raise SynchronizerError(
            operation,
            f"malformed session id: {session_id!r}",
            reason=ErrorReason.MALFORMED_RECORD,
        ) from None


class SqlSynchronizer(RemoteSynchronizer):
    """Remote synchronizer over an async SQLAlchemy session factory.

    Args:
        session_factory: defaults to the process-wide factory from
            :func:`trias_db.engine.get_session_factory`
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._factory = session_factory
        self._repo = AssessmentRepository()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        factory = self._factory or get_session_factory()
        try:
            async with factory() as db:
                yield db
                await db.commit()
        except SQLAlchemyError as exc:
            logger.warning("%s failed: %s", operation, exc)
            raise SynchronizerError(operation, str(exc)) from exc

    # ------------------------------------------------------------------
    # RemoteSynchronizer
    # ------------------------------------------------------------------

    async def load_catalog(self) -> Catalog:
        async with self._transaction("load_catalog") as db:
            themes = [row.to_record() for row in await self._repo.list_themes(db)]
            questions = [row.to_record() for row in await self._repo.list_questions(db)]
        catalog = Catalog.from_records(themes, questions)
        if catalog.rejected:
            logger.warning("Catalog loaded with %d quarantined records", len(catalog.rejected))
        return catalog

    async def create_session(self, user_id: str) -> str:
        async with self._transaction("create_session") as db:
            row = await self._repo.create_assessment(db, user_id=user_id)
            session_id = str(row.id)
        logger.info("Created assessment %s for user %s", session_id, user_id)
        return session_id

    async def upsert_answer(
        self, session_id: str, question_id: str, selected_option: int
    ) -> None:
        assessment_id = _parse_session_id("upsert_answer", session_id)
        async with self._transaction("upsert_answer") as db:
            await self._repo.upsert_answer(
                db,
                assessment_id=assessment_id,
                question_id=question_id,
                selected_option=selected_option,
            )

    async def upsert_result(self, session_id: str, result: Result) -> None:
        assessment_id = _parse_session_id("upsert_result", session_id)
        async with self._transaction("upsert_result") as db:
            await self._repo.upsert_result(
                db,
                assessment_id=assessment_id,
                theme_id=result.theme_id,
                score=result.score,
                status=result.status.value,
            )

    async def mark_session_complete(self, session_id: str, completed_at: datetime) -> None:
        assessment_id = _parse_session_id("mark_session_complete", session_id)
        async with self._transaction("mark_session_complete") as db:
            row = await self._repo.get_assessment(db, assessment_id)
            if row is None:
                raise SynchronizerError(
                    "mark_session_complete", f"assessment not found: {session_id}",
                )
            await self._repo.mark_complete(db, row, completed_at)

    async def load_most_recent_completed_session(
        self, user_id: str
    ) -> CompletedSession | None:
        async with self._transaction("load_most_recent_completed_session") as db:
            row = await self._repo.get_latest_completed(db, user_id)
            if row is None:
                return None
            result_rows = await self._repo.list_results(db, row.id)
            session_id = str(row.id)
            completed_at = row.completed_at

        results: list[Result] = []
        for result_row in result_rows:
            try:
                results.append(Result.model_validate(result_row.to_record()))
            except ValidationError as exc:
                logger.warning(
                    "Quarantined malformed result for assessment %s: %s", session_id, exc,
                )
        return CompletedSession(
            session_id=session_id, results=results, completed_at=completed_at,
        )

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    async def save_catalog(self, catalog: Catalog) -> None:
        """Write (insert or replace) every theme and question of *catalog*."""
        async with self._transaction("save_catalog") as db:
            for theme in catalog.themes:
                await self._repo.save_theme(db, ThemeRow(
                    id=theme.id,
                    sort_order=theme.order,
                    title=theme.title.model_dump(),
                    description=theme.description.model_dump(),
                    icon=theme.icon,
                    color=theme.color,
                    tips=theme.tips.model_dump(),
                ))
            for question in catalog.questions:
                await self._repo.save_question(db, QuestionRow(
                    id=question.id,
                    theme_id=question.theme_id,
                    position=question.position,
                    text=question.text.model_dump(),
                    options=question.options.model_dump(),
                ))
        logger.info(
            "Saved catalog: %d themes, %d questions",
            len(catalog.themes), len(catalog.questions),
        )

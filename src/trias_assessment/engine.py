"""AssessmentEngine — the state machine behind an assessment session.

Stateful engine pattern: one engine instance owns one user's
:class:`SessionState` and is driven from a single event loop.  Every
mutation is flushed write-through to the local cache so the session can be
resumed after a restart without a network round trip.

States::

    not_started ──start()──► in_progress ──advance() past last──► completed
    reset() from any state returns to not_started.

Local vs. remote:

  - ``answer()`` updates local state synchronously and schedules the remote
    upsert as a background task.  A remote failure is recorded on the
    outcome channel (``sync_outcomes`` / ``on_sync``) and never rolls back
    or blocks the local answer.
  - ``start()``, completion (via ``advance()``), ``load_catalog()`` and
    ``fetch_results()`` await the remote store.  Their failures are raised
    and leave the session in its last consistent state, so the same call
    can simply be retried.

Completion needs at least one answer.  It re-sends any answer whose
background upsert failed, then recomputes and upserts every result.
Both upserts are idempotent, so a completion that failed half way is safe
to retry as a whole.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Awaitable, Callable, TypeVar

from trias_assessment.auth import AuthStore, User
from trias_assessment.cache import SnapshotStore
from trias_assessment.catalog import Catalog
from trias_assessment.constants import (
    ASSESSMENT_STORE,
    DEFAULT_LANGUAGE,
    LANGUAGES,
    SYNC_HISTORY_SIZE,
)
from trias_assessment.errors import (
    AssessmentError,
    CacheError,
    CatalogError,
    ErrorReason,
    PreconditionError,
    SynchronizerError,
)
from trias_assessment.interfaces import LocalCache, RemoteSynchronizer
from trias_assessment.models.catalog import Language, Question, Theme
from trias_assessment.models.session import (
    Answer,
    AssessmentView,
    CompletedSession,
    PersistedAssessment,
    Progress,
    QuestionPayload,
    Result,
    SessionSnapshot,
    SessionState,
    SessionStatus,
    SyncOutcome,
    ThemePayload,
)
from trias_assessment.scoring import score_session

logger = logging.getLogger(__name__)

T = TypeVar("T")

SyncListener = Callable[[SyncOutcome], None]


class AssessmentEngine:
    """Drives one user's assessment session.

    Args:
        synchronizer: the remote store of record
        cache: local durable cache; the session is restored from it on
            construction
        auth: current authentication state
        catalog: an already-loaded catalog (skips :meth:`load_catalog`)
        clock: returns the completion timestamp; defaults to UTC now
        on_sync: called with every :class:`SyncOutcome` recorded
    """

    def __init__(
        self,
        synchronizer: RemoteSynchronizer,
        cache: LocalCache,
        auth: AuthStore,
        *,
        catalog: Catalog | None = None,
        clock: Callable[[], datetime] | None = None,
        on_sync: SyncListener | None = None,
    ) -> None:
        self._sync = synchronizer
        self._auth = auth
        self._catalog = catalog
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._on_sync = on_sync
        self._snapshots = SnapshotStore(cache, ASSESSMENT_STORE, PersistedAssessment)

        self._state = SessionState()
        self._language: Language = DEFAULT_LANGUAGE if DEFAULT_LANGUAGE in LANGUAGES else "en"

        self._outcomes: deque[SyncOutcome] = deque(maxlen=SYNC_HISTORY_SIZE)
        self._pending: set[asyncio.Task] = set()
        # Latest scheduled upsert per (session_id, question_id)
        self._answer_tasks: dict[tuple[str, str], asyncio.Task] = {}
        # (session_id, question_id) pairs whose latest background upsert failed
        self._unsynced: set[tuple[str, str]] = set()

        self._restore()
        if self._catalog is not None:
            self._reconcile_with_catalog()

    # ==================================================================
    # Catalog
    # ==================================================================

    @property
    def catalog(self) -> Catalog | None:
        return self._catalog

    async def load_catalog(self) -> Catalog:
        """Fetch the catalog from the remote store.

        Raises :class:`SynchronizerError` on remote failure or
        :class:`CatalogError` if the fetched catalog is unusable.  The
        previously loaded catalog (if any) is kept on failure.
        """
        catalog = await self._remote("load_catalog", self._sync.load_catalog)
        self._catalog = catalog
        self._reconcile_with_catalog()
        logger.info(
            "Catalog loaded: %d themes, %d questions",
            len(catalog.themes), catalog.total_questions,
        )
        return catalog

    def _require_catalog(self) -> Catalog:
        if self._catalog is None:
            raise CatalogError(
                "catalog is not loaded; call load_catalog() first",
                reason=ErrorReason.CATALOG_NOT_LOADED,
            )
        return self._catalog

    def _reconcile_with_catalog(self) -> None:
        """Discard a restored in-progress session that no longer fits the catalog."""
        state = self._state
        if state.status != SessionStatus.IN_PROGRESS:
            return
        catalog = self._catalog
        fits = 0 <= state.theme_cursor < len(catalog.themes)
        if fits:
            theme = catalog.themes[state.theme_cursor]
            fits = 0 <= state.question_cursor < len(catalog.questions_for_theme(theme.id))
        if fits:
            fits = all(catalog.has_question(qid) for qid in state.answers)
        if not fits:
            logger.warning(
                "Restored session %s does not match the loaded catalog; starting fresh",
                state.session_id,
            )
            self._state = SessionState()
            self._persist()

    # ==================================================================
    # Lifecycle
    # ==================================================================

    async def start(self) -> SessionSnapshot:
        """Open a new session at the remote store and enter ``in_progress``.

        Preconditions: signed in, catalog loaded, no session in progress
        or completed (call :meth:`reset` first).  On remote failure the
        engine stays ``not_started``.
        """
        if not self._auth.is_authenticated:
            raise PreconditionError(ErrorReason.NOT_AUTHENTICATED, "user is not authenticated")
        self._require_catalog()
        if self._state.status != SessionStatus.NOT_STARTED:
            raise PreconditionError(
                ErrorReason.INVALID_STATE,
                f"cannot start: session is '{self._state.status.value}', call reset() first",
            )

        user_id = self._auth.user_id
        session_id = await self._remote(
            "create_session", lambda: self._sync.create_session(user_id)
        )
        if not session_id:
            raise SynchronizerError(
                "create_session",
                "remote store returned no session id",
                reason=ErrorReason.MALFORMED_RECORD,
            )

        self._state = SessionState(
            session_id=str(session_id),
            status=SessionStatus.IN_PROGRESS,
        )
        self._persist()
        logger.info("Assessment %s started for user %s", session_id, user_id)
        return self.snapshot()

    def answer(self, question_id: str, selected_option: int) -> SessionSnapshot:
        """Record the answer to the current question.

        The local upsert is done before this returns.  The remote upsert is
        scheduled on the running event loop and its outcome is only
        observable through ``sync_outcomes`` / ``on_sync``.
        """
        question = self._require_current_question()
        if not self._catalog.has_question(question_id):
            raise PreconditionError(
                ErrorReason.UNKNOWN_QUESTION, f"unknown question: {question_id}"
            )
        if question_id != question.id:
            raise PreconditionError(
                ErrorReason.QUESTION_NOT_CURRENT,
                f"question {question_id} is not the current question ({question.id})",
            )
        if (
            isinstance(selected_option, bool)
            or not isinstance(selected_option, int)
            or not question.accepts(selected_option)
        ):
            raise PreconditionError(
                ErrorReason.OPTION_OUT_OF_RANGE,
                f"option {selected_option!r} out of range for question {question_id} "
                f"(0-{question.option_count - 1})",
            )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise PreconditionError(
                ErrorReason.INVALID_STATE, "answer() must be called from a running event loop",
            ) from None

        session_id = self._state.session_id
        self._state.answers[question_id] = Answer(
            question_id=question_id, selected_option=selected_option,
        )
        self._persist()

        # Upserts of the same question run one after another, so the
        # remote store ends up with the latest choice
        key = (session_id, question_id)
        task = loop.create_task(self._push_answer(
            session_id, question_id, selected_option, after=self._answer_tasks.get(key),
        ))
        self._answer_tasks[key] = task
        self._pending.add(task)

        def _forget(done: asyncio.Task) -> None:
            self._pending.discard(done)
            if self._answer_tasks.get(key) is done:
                del self._answer_tasks[key]

        task.add_done_callback(_forget)
        return self.snapshot()

    async def advance(self) -> SessionSnapshot:
        """Move the cursor to the next question, theme, or completion.

        Advancing past the last question of the last theme completes the
        session, provided at least one question was answered (otherwise
        ``invalid_state`` is raised and nothing changes).  If completion
        fails the cursor stays on that last
        question, the session stays ``in_progress``, and the error is
        raised; calling ``advance()`` again retries the completion.
        """
        catalog = self._require_catalog()
        if self._state.status != SessionStatus.IN_PROGRESS:
            raise PreconditionError(
                ErrorReason.INVALID_STATE,
                f"cannot advance: session is '{self._state.status.value}'",
            )

        state = self._state
        theme = catalog.themes[state.theme_cursor]
        if state.question_cursor < len(catalog.questions_for_theme(theme.id)) - 1:
            state.question_cursor += 1
        elif state.theme_cursor < len(catalog.themes) - 1:
            state.theme_cursor += 1
            state.question_cursor = 0
        else:
            await self._complete()
            return self.snapshot()

        self._persist()
        return self.snapshot()

    async def _complete(self) -> None:
        """Score every theme, persist results, and flag the session finished."""
        catalog = self._require_catalog()
        state = self._state
        session_id = state.session_id
        if not state.answers:
            raise PreconditionError(
                ErrorReason.INVALID_STATE,
                "cannot complete a session without answers; answer at least one question",
            )

        # Reconcile answers first so the remote store matches what was scored
        await self.wait_for_sync()
        for key in sorted(k for k in self._unsynced if k[0] == session_id):
            answer = state.answers.get(key[1])
            if answer is not None:
                await self._remote(
                    "upsert_answer",
                    lambda a=answer: self._sync.upsert_answer(
                        session_id, a.question_id, a.selected_option,
                    ),
                )
            self._unsynced.discard(key)

        results = score_session(catalog, state.answers.values())
        for result in results:
            await self._remote(
                "upsert_result", lambda r=result: self._sync.upsert_result(session_id, r),
            )
        completed_at = self._clock()
        await self._remote(
            "mark_session_complete",
            lambda: self._sync.mark_session_complete(session_id, completed_at),
        )

        if self._state is not state:
            raise PreconditionError(
                ErrorReason.INVALID_STATE, "session was reset while completing",
            )
        state.results = results
        state.status = SessionStatus.COMPLETED
        self._persist()
        logger.info(
            "Assessment %s completed: %d results from %d answers",
            session_id, len(results), len(state.answers),
        )

    def reset(self) -> SessionSnapshot:
        """Discard the session unconditionally.  Remote records are untouched."""
        previous = self._state.session_id
        self._state = SessionState()
        self._unsynced.clear()
        self._persist()
        logger.info("Assessment %s reset", previous)
        return self.snapshot()

    async def fetch_results(self) -> CompletedSession | None:
        """Load the user's most recent completed session from the remote store.

        Returns ``None`` if the user has never finished one.  When no
        session is in progress, the fetched session is adopted as the
        engine's (completed) state so it can be displayed and exported; an
        in-progress session is never overwritten, and a remote session
        without results is returned but never adopted.
        """
        if not self._auth.is_authenticated:
            raise PreconditionError(ErrorReason.NOT_AUTHENTICATED, "user is not authenticated")

        user_id = self._auth.user_id
        completed = await self._remote(
            "load_most_recent_completed_session",
            lambda: self._sync.load_most_recent_completed_session(user_id),
        )
        if completed is None:
            return None

        results = self._in_catalog_order(completed.results)
        completed = completed.model_copy(update={"results": results})
        if not results:
            logger.warning(
                "Remote session %s is completed but has no results; not adopted",
                completed.session_id,
            )
        elif self._state.status != SessionStatus.IN_PROGRESS:
            self._state = SessionState(
                session_id=completed.session_id,
                status=SessionStatus.COMPLETED,
                results=list(results),
            )
            self._persist()
        return completed

    def _in_catalog_order(self, results: list[Result]) -> list[Result]:
        if self._catalog is None:
            return list(results)
        rank = {theme_id: i for i, theme_id in enumerate(self._catalog.theme_ids)}
        return sorted(results, key=lambda r: rank.get(r.theme_id, len(rank)))

    # ==================================================================
    # Read-only accessors
    # ==================================================================

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def session_id(self) -> str | None:
        return self._state.session_id

    @property
    def user(self) -> User | None:
        """The signed-in user, or ``None``."""
        return self._auth.state.user if self._auth.is_authenticated else None

    @property
    def language(self) -> Language:
        return self._language

    def set_language(self, language: str) -> None:
        """Select the display language.  Has no effect on scoring or progression."""
        if language not in LANGUAGES:
            raise PreconditionError(
                ErrorReason.UNSUPPORTED_LANGUAGE,
                f"unsupported language {language!r}, expected one of {', '.join(LANGUAGES)}",
            )
        self._language = language
        self._persist()

    def is_completed(self) -> bool:
        return self._state.completed

    def results(self) -> list[Result]:
        return list(self._state.results)

    def current_theme(self) -> Theme | None:
        """Theme under the cursor, or ``None`` outside ``in_progress``."""
        if self._state.status != SessionStatus.IN_PROGRESS or self._catalog is None:
            return None
        return self._catalog.themes[self._state.theme_cursor]

    def current_question(self) -> Question | None:
        """Question under the cursor, or ``None`` outside ``in_progress``."""
        theme = self.current_theme()
        if theme is None:
            return None
        return self._catalog.questions_for_theme(theme.id)[self._state.question_cursor]

    def theme_answers(self, theme_id: str) -> list[Answer]:
        catalog = self._require_catalog()
        ids = {q.id for q in catalog.questions_for_theme(theme_id)}
        return [a for qid, a in self._state.answers.items() if qid in ids]

    def progress(self) -> Progress:
        total = self._catalog.total_questions if self._catalog is not None else 0
        answered = len(self._state.answers)
        if self._state.completed:
            fraction = 1.0
        else:
            fraction = answered / total if total else 0.0
        return Progress(answered=answered, total=total, fraction=fraction)

    def snapshot(self) -> SessionSnapshot:
        """Immutable copy of the session; never aliases engine state."""
        data = self._state.model_dump()
        return SessionSnapshot(**data, language=self._language)

    def view(self) -> AssessmentView:
        """Language-resolved view of the current screen for a renderer."""
        lang = self._language
        theme = self.current_theme()
        question = self.current_question()

        theme_payload = None
        question_payload = None
        selected = None
        if theme is not None:
            theme_questions = self._catalog.questions_for_theme(theme.id)
            theme_payload = ThemePayload(
                theme_id=theme.id,
                title=theme.title.get(lang),
                description=theme.description.get(lang),
                icon=theme.icon,
                color=theme.color,
                tips=theme.tips.get(lang),
                index=self._state.theme_cursor,
                theme_count=len(self._catalog.themes),
            )
            question_payload = QuestionPayload(
                question_id=question.id,
                theme_id=theme.id,
                text=question.text.get(lang),
                options=question.options.get(lang),
                option_count=question.option_count,
                index=self._state.question_cursor,
                theme_question_count=len(theme_questions),
            )
            existing = self._state.answers.get(question.id)
            selected = existing.selected_option if existing is not None else None

        return AssessmentView(
            status=self._state.status,
            session_id=self._state.session_id,
            language=lang,
            theme=theme_payload,
            question=question_payload,
            selected_option=selected,
            progress=self.progress(),
            results=list(self._state.results),
        )

    # ==================================================================
    # Outcome channel
    # ==================================================================

    @property
    def sync_outcomes(self) -> tuple[SyncOutcome, ...]:
        return tuple(self._outcomes)

    def failed_syncs(self) -> list[SyncOutcome]:
        return [o for o in self._outcomes if not o.ok]

    @property
    def pending_sync_count(self) -> int:
        return len(self._pending)

    @property
    def unsynced_count(self) -> int:
        """Answers of the current session still waiting to be re-sent at completion."""
        return len(self._unsynced)

    async def wait_for_sync(self) -> None:
        """Wait until every scheduled background upsert has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _record(self, outcome: SyncOutcome) -> None:
        self._outcomes.append(outcome)
        if self._on_sync is not None:
            try:
                self._on_sync(outcome)
            except Exception:
                logger.exception("on_sync listener raised for %s", outcome.operation)

    async def _push_answer(
        self,
        session_id: str,
        question_id: str,
        selected_option: int,
        *,
        after: asyncio.Task | None = None,
    ) -> None:
        """Background upsert of one answer, once *after* has finished.  Never raises."""
        if after is not None:
            await asyncio.wait([after])
        try:
            await self._sync.upsert_answer(session_id, question_id, selected_option)
        except Exception as exc:
            error = exc if isinstance(exc, AssessmentError) else SynchronizerError(
                "upsert_answer", str(exc) or type(exc).__name__,
            )
            logger.warning(
                "Answer upsert failed (session=%s, question=%s): %s",
                session_id, question_id, error.message,
            )
            # A session discarded by reset() has nothing left to reconcile
            if session_id == self._state.session_id:
                self._unsynced.add((session_id, question_id))
            self._record(SyncOutcome(
                operation="upsert_answer",
                ok=False,
                session_id=session_id,
                key=question_id,
                error=error.message,
                reason=error.reason.value,
                at=datetime.now(timezone.utc),
            ))
        else:
            self._unsynced.discard((session_id, question_id))
            self._record(SyncOutcome(
                operation="upsert_answer",
                ok=True,
                session_id=session_id,
                key=question_id,
                at=datetime.now(timezone.utc),
            ))

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _require_current_question(self) -> Question:
        self._require_catalog()
        if self._state.status != SessionStatus.IN_PROGRESS:
            raise PreconditionError(
                ErrorReason.INVALID_STATE,
                f"cannot answer: session is '{self._state.status.value}'",
            )
        return self.current_question()

    async def _remote(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Await a blocking remote call, normalising failures to SynchronizerError."""
        try:
            return await call()
        except AssessmentError:
            raise
        except Exception as exc:
            raise SynchronizerError(operation, str(exc) or type(exc).__name__) from exc

    def _restore(self) -> None:
        try:
            persisted = self._snapshots.load()
        except CacheError as exc:
            logger.warning("Cannot read cached assessment, starting fresh: %s", exc)
            return
        if persisted is None:
            return
        self._state = persisted.state
        self._language = persisted.language
        logger.info(
            "Restored assessment %s (%s) from cache",
            self._state.session_id, self._state.status.value,
        )

    def _persist(self) -> None:
        """Write-through to the local cache.  Failures are recorded, not raised."""
        try:
            self._snapshots.save(
                PersistedAssessment(state=self._state, language=self._language)
            )
        except CacheError as exc:
            logger.warning("Cannot write assessment to cache: %s", exc)
            self._record(SyncOutcome(
                operation="cache_write",
                ok=False,
                session_id=self._state.session_id,
                error=exc.message,
                reason=exc.reason.value,
                at=datetime.now(timezone.utc),
            ))

"""Session and result models — the contract between the engine and callers.

``SessionState`` is the single mutable object owned by the engine.  Callers
never receive it; they get a frozen :class:`SessionSnapshot` (or a
language-resolved :class:`AssessmentView`) built from a copy.

Lifecycle (``SessionStatus``):

    not_started ──start()──► in_progress ──advance() past last──► completed
         ▲                                                            │
         └──────────────────────── reset() ◄──────────────────────────┘
"""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from trias_assessment.models.catalog import Language


class SessionStatus(str, enum.Enum):
    """Lifecycle states for an assessment session."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ResultStatus(str, enum.Enum):
    """Qualitative band for a theme score, from best to worst."""

    NORMAL = "normal"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class Answer(BaseModel):
    """One answer, keyed uniquely by ``question_id`` within a session."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    question_id: str
    selected_option: int = Field(ge=0)


class Result(BaseModel):
    """Computed score and status for one theme of a completed session."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    theme_id: str
    score: int = Field(ge=0, le=100)
    status: ResultStatus


class SessionState(BaseModel):
    """Mutable progression state.  Only the engine writes to it."""

    session_id: str | None = None
    status: SessionStatus = SessionStatus.NOT_STARTED
    theme_cursor: int = 0
    question_cursor: int = 0
    # Insertion-ordered: question_id -> Answer
    answers: dict[str, Answer] = Field(default_factory=dict)
    results: list[Result] = Field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED


class SessionSnapshot(BaseModel):
    """Read-only copy of the session handed to external readers."""

    model_config = ConfigDict(frozen=True)

    session_id: str | None
    status: SessionStatus
    theme_cursor: int
    question_cursor: int
    answers: dict[str, Answer]
    results: list[Result]
    language: Language

    @property
    def completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED


class CompletedSession(BaseModel):
    """Most recent finished session as reported by the remote store."""

    session_id: str
    results: list[Result]
    completed_at: datetime | None = None


class SyncOutcome(BaseModel):
    """Outcome of a non-blocking remote call, kept for observability."""

    operation: str
    ok: bool
    session_id: str | None = None
    # Record key the call was about (question id, theme id, ...)
    key: str | None = None
    error: str | None = None
    reason: str | None = None
    at: datetime


# ---------------------------------------------------------------------------
# Renderer-facing views
# ---------------------------------------------------------------------------

class Progress(BaseModel):
    """How far through the catalog the session is."""

    answered: int
    total: int
    fraction: float


class ThemePayload(BaseModel):
    """Theme resolved into the selected language."""

    theme_id: str
    title: str
    description: str
    icon: str
    color: str
    tips: list[str]
    # Zero-based index of the theme in catalog order
    index: int
    theme_count: int


class QuestionPayload(BaseModel):
    """Question resolved into the selected language.

    Strips catalog internals and presents only what a UI needs to render
    the current question.
    """

    question_id: str
    theme_id: str
    text: str
    options: list[str]
    option_count: int
    # Zero-based index within the theme
    index: int
    theme_question_count: int


class AssessmentView(BaseModel):
    """Everything a renderer needs for the current screen."""

    status: SessionStatus
    session_id: str | None
    language: Language
    theme: ThemePayload | None = None
    question: QuestionPayload | None = None
    # Previously recorded answer for the current question, if any
    selected_option: int | None = None
    progress: Progress
    results: list[Result] = Field(default_factory=list)


class PersistedAssessment(BaseModel):
    """What the engine writes to the local cache on every mutation."""

    state: SessionState
    language: Language

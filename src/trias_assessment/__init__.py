"""trias_assessment — Likert-scale assessment session SDK.

Public API:
    AssessmentEngine   — state machine: start, answer, advance, reset, results
    Catalog            — ordered themes and questions with lookup helpers
    RemoteSynchronizer — ABC for the remote store of record
    LocalCache         — ABC for the local durable key-value cache
    MemoryCache        — in-process LocalCache
    FileCache          — one-file-per-key LocalCache
    AuthStore          — current signed-in user, persisted in the cache
    score_theme        — pure scoring of one theme's answers
    build_report       — report data for a completed session

Errors:
    AssessmentError    — base: tagged ``reason`` + message
    PreconditionError, CatalogError, SynchronizerError, CacheError
"""

from trias_assessment.auth import AuthState, AuthStore, User
from trias_assessment.cache import FileCache, MemoryCache, SnapshotStore, cache_key
from trias_assessment.catalog import Catalog
from trias_assessment.engine import AssessmentEngine
from trias_assessment.errors import (
    AssessmentError,
    CacheError,
    CatalogError,
    ErrorReason,
    PreconditionError,
    SynchronizerError,
)
from trias_assessment.interfaces import LocalCache, RemoteSynchronizer
from trias_assessment.models import (
    Answer,
    AssessmentView,
    CompletedSession,
    Question,
    Result,
    ResultStatus,
    SessionSnapshot,
    SessionStatus,
    SyncOutcome,
    Theme,
)
from trias_assessment.report import AssessmentReport, build_report
from trias_assessment.scoring import classify_status, score_session, score_theme

__all__ = [
    # Engine & catalog
    "AssessmentEngine",
    "Catalog",
    # Collaborators
    "RemoteSynchronizer",
    "LocalCache",
    "MemoryCache",
    "FileCache",
    "SnapshotStore",
    "cache_key",
    "AuthStore",
    "AuthState",
    "User",
    # Models
    "Answer",
    "AssessmentView",
    "CompletedSession",
    "Question",
    "Result",
    "ResultStatus",
    "SessionSnapshot",
    "SessionStatus",
    "SyncOutcome",
    "Theme",
    # Scoring & report
    "classify_status",
    "score_session",
    "score_theme",
    "AssessmentReport",
    "build_report",
    # Errors
    "AssessmentError",
    "CacheError",
    "CatalogError",
    "ErrorReason",
    "PreconditionError",
    "SynchronizerError",
]

"""Public model re-exports for trias_assessment.

Consumers should import from ``trias_assessment.models`` rather than
reaching into sub-modules directly.
"""

# --- Catalog ---
from trias_assessment.models.catalog import (
    Language,
    LocalizedList,
    LocalizedText,
    Question,
    Theme,
)

# --- Session / results ---
from trias_assessment.models.session import (
    Answer,
    AssessmentView,
    CompletedSession,
    PersistedAssessment,
    Progress,
    QuestionPayload,
    Result,
    ResultStatus,
    SessionSnapshot,
    SessionState,
    SessionStatus,
    SyncOutcome,
    ThemePayload,
)

__all__ = [
    # Catalog
    "Language",
    "LocalizedList",
    "LocalizedText",
    "Question",
    "Theme",
    # Session
    "Answer",
    "CompletedSession",
    "PersistedAssessment",
    "Result",
    "ResultStatus",
    "SessionSnapshot",
    "SessionState",
    "SessionStatus",
    "SyncOutcome",
    # Views
    "AssessmentView",
    "Progress",
    "QuestionPayload",
    "ThemePayload",
]

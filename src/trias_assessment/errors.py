"""Error taxonomy for the assessment SDK.

Every failure that crosses an engine boundary is an :class:`AssessmentError`
carrying a machine-readable ``reason`` tag and a human-readable message.
``AssessmentError`` subclasses ``ValueError`` so callers that only care
about "the request could not be honoured" can keep catching that.

Subclasses group the reasons by origin:

  - PreconditionError  — rejected synchronously, nothing was mutated
  - CatalogError       — catalog missing or structurally invalid
  - SynchronizerError  — the remote store reported a failure
  - CacheError         — the local cache could not be read or written
"""

import enum


class ErrorReason(str, enum.Enum):
    """Tag identifying which precondition or collaborator failed."""

    NOT_AUTHENTICATED = "not_authenticated"
    CATALOG_NOT_LOADED = "catalog_not_loaded"
    CATALOG_INVALID = "catalog_invalid"
    INVALID_STATE = "invalid_state"
    QUESTION_NOT_CURRENT = "question_not_current"
    UNKNOWN_QUESTION = "unknown_question"
    OPTION_OUT_OF_RANGE = "option_out_of_range"
    REMOTE_FAILURE = "remote_failure"
    MALFORMED_RECORD = "malformed_record"
    CACHE_FAILURE = "cache_failure"
    UNSUPPORTED_LANGUAGE = "unsupported_language"


class AssessmentError(ValueError):
    """Base error: a tagged reason plus a message."""

    def __init__(self, reason: ErrorReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message

    def to_dict(self) -> dict:
        return {"reason": self.reason.value, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.reason.value!r}, {self.message!r})"


class PreconditionError(AssessmentError):
    """An operation was called in a state that does not allow it."""


class CatalogError(AssessmentError):
    """The catalog is not loaded or failed structural validation."""

    def __init__(self, message: str, reason: ErrorReason = ErrorReason.CATALOG_INVALID) -> None:
        super().__init__(reason, message)


class SynchronizerError(AssessmentError):
    """A remote store operation failed.

    ``operation`` names the synchronizer method that failed so callers
    can retry the right thing.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        reason: ErrorReason = ErrorReason.REMOTE_FAILURE,
    ) -> None:
        super().__init__(reason, f"{operation}: {message}")
        self.operation = operation


class CacheError(AssessmentError):
    """The local cache backend failed."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorReason.CACHE_FAILURE, message)

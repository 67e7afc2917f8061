"""Abstract interfaces for the engine's external collaborators.

These ABCs define the contract that concrete backends must fulfil.  The
SDK itself ships only the local cache backends (``trias_assessment.cache``);
the SQL implementation of the remote store lives in ``trias_db``.

Typical wiring::

    synchronizer: RemoteSynchronizer = SqlSynchronizer(get_session_factory())
    cache: LocalCache = FileCache("~/.trias")
    auth = AuthStore(cache)
    engine = AssessmentEngine(synchronizer, cache, auth)

    await engine.load_catalog()
    await engine.start()
"""

from abc import ABC, abstractmethod
from datetime import datetime

from trias_assessment.catalog import Catalog
from trias_assessment.models.session import CompletedSession, Result


class RemoteSynchronizer(ABC):
    """Interface for the remote store of record.

    Every operation is independently fallible and must raise
    :class:`~trias_assessment.errors.SynchronizerError` on failure rather
    than returning a partial or assumed-successful value.  Implementations
    define no retry policy; each call is attempted once.

    ``upsert_answer`` and ``upsert_result`` must be idempotent on
    ``(session_id, question_id)`` and ``(session_id, theme_id)``
    respectively: repeating a call leaves exactly one record.
    """

    @abstractmethod
    async def load_catalog(self) -> Catalog:
        """Fetch and validate the catalog (themes + questions)."""
        ...

    @abstractmethod
    async def create_session(self, user_id: str) -> str:
        """Create a new, unfinished session record and return its id."""
        ...

    @abstractmethod
    async def upsert_answer(
        self, session_id: str, question_id: str, selected_option: int
    ) -> None:
        """Insert or replace the answer to one question."""
        ...

    @abstractmethod
    async def upsert_result(self, session_id: str, result: Result) -> None:
        """Insert or replace the result for one theme."""
        ...

    @abstractmethod
    async def mark_session_complete(
        self, session_id: str, completed_at: datetime
    ) -> None:
        """Flag the session record as finished at ``completed_at``."""
        ...

    @abstractmethod
    async def load_most_recent_completed_session(
        self, user_id: str
    ) -> CompletedSession | None:
        """Return the user's latest finished session, or ``None`` if there is none."""
        ...


class LocalCache(ABC):
    """Durable key-value store for session and auth snapshots.

    Values are serialized strings.  Backends raise
    :class:`~trias_assessment.errors.CacheError` when the underlying
    storage fails; a missing key is not an error and returns ``None``.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

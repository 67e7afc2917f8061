"""Authentication state consumed by the engine.

Signing in (credentials, tokens, refresh) happens outside the SDK.  The
engine only needs to know whether someone is signed in and who, so this
module keeps just that, persisted write-through under the ``auth`` store
of the local cache so it survives a restart.
"""

import logging

from pydantic import BaseModel

from trias_assessment.cache import SnapshotStore
from trias_assessment.constants import AUTH_STORE
from trias_assessment.errors import CacheError
from trias_assessment.interfaces import LocalCache

logger = logging.getLogger(__name__)


class User(BaseModel):
    id: str
    email: str = ""
    name: str = "User"


class AuthState(BaseModel):
    user: User | None = None
    is_authenticated: bool = False


class AuthStore:
    """Holds the current :class:`AuthState` and mirrors it to the cache.

    Cache failures never fail a sign-in or sign-out: an unreadable record
    starts signed out, and a failed write keeps the new state in memory.
    """

    def __init__(self, cache: LocalCache) -> None:
        self._snapshots = SnapshotStore(cache, AUTH_STORE, AuthState)
        try:
            persisted = self._snapshots.load()
        except CacheError as exc:
            logger.warning("Cannot read cached auth state, starting signed out: %s", exc)
            persisted = None
        self._state = persisted or AuthState()

    @property
    def state(self) -> AuthState:
        return self._state.model_copy()

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated and self._state.user is not None

    @property
    def user_id(self) -> str | None:
        return self._state.user.id if self.is_authenticated else None

    def sign_in(self, user: User) -> None:
        self._state = AuthState(user=user, is_authenticated=True)
        self._save()
        logger.info("Signed in user %s", user.id)

    def sign_out(self) -> None:
        self._state = AuthState()
        self._save()
        logger.info("Signed out")

    def _save(self) -> None:
        try:
            self._snapshots.save(self._state)
        except CacheError as exc:
            logger.warning("Cannot write auth state to cache: %s", exc)

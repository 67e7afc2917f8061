"""Local cache backends and the versioned snapshot store.

Two :class:`~trias_assessment.interfaces.LocalCache` backends:

  - MemoryCache: a dict; state is lost with the process (tests, servers
    that do not need restart durability)
  - FileCache: one JSON file per key under a directory, replaced
    atomically so a crash mid-write never leaves a torn record

:class:`SnapshotStore` sits on top of a backend and stores one pydantic
model per store name under a fixed versioned key::

    trias:assessment:v1 -> {"version": 1, "state": {...}}

There is no migration logic.  A record written by a different version, or
one that no longer validates, is discarded and the caller starts fresh.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from trias_assessment.constants import CACHE_NAMESPACE, CACHE_VERSION
from trias_assessment.errors import CacheError
from trias_assessment.interfaces import LocalCache

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def cache_key(store: str, *, namespace: str = CACHE_NAMESPACE, version: int = CACHE_VERSION) -> str:
    """Fixed versioned key for one store, e.g. ``trias:assessment:v1``."""
    return f"{namespace}:{store}:v{version}"


class MemoryCache(LocalCache):
    """In-process dict backend."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class FileCache(LocalCache):
    """One file per key under ``directory``.

    Keys are mapped to file names by replacing characters that are not
    safe in a path component.  The directory is created on first write.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        return self._dir / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheError(f"cannot read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file, then atomically swap it in
            fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise CacheError(f"cannot write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheError(f"cannot delete {path}: {exc}") from exc


class SnapshotStore(Generic[ModelT]):
    """Versioned, validated persistence of one model under one store name.

    Args:
        cache: the backend to read from / write to
        store: store name (``assessment`` or ``auth``)
        model: the pydantic model class stored under this key
    """

    def __init__(self, cache: LocalCache, store: str, model: type[ModelT]) -> None:
        self._cache = cache
        self._model = model
        self.key = cache_key(store)

    def load(self) -> ModelT | None:
        """Return the stored model, or ``None`` if absent or unreadable.

        Backend failures propagate as :class:`CacheError`; format problems
        do not, they are logged and treated as "nothing stored".
        """
        raw = self._cache.get(self.key)
        if raw is None:
            return None
        try:
            envelope = json.loads(raw)
            if not isinstance(envelope, dict) or envelope.get("version") != CACHE_VERSION:
                logger.warning(
                    "Discarding cached record %s: version %r != %d",
                    self.key,
                    envelope.get("version") if isinstance(envelope, dict) else None,
                    CACHE_VERSION,
                )
                return None
            return self._model.model_validate(envelope.get("state"))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Discarding unreadable cached record %s: %s", self.key, exc)
            return None

    def save(self, value: ModelT) -> None:
        payload = {"version": CACHE_VERSION, "state": value.model_dump(mode="json")}
        self._cache.set(self.key, json.dumps(payload, ensure_ascii=False))

    def clear(self) -> None:
        self._cache.delete(self.key)

"""Catalog — the immutable, ordered set of themes and questions.

This is the single source of truth for catalog data during a session.  A
catalog is built once (from YAML on disk, or from rows fetched by the
remote synchronizer) and provides ordered lookup by theme and question.

Usage::

    catalog = Catalog.from_yaml()              # defaults to catalog/v1/
    first = catalog.questions_for_theme(catalog.themes[0].id)[0]
    theme = catalog.theme_of(first.id)

Remote rows go through :meth:`Catalog.from_records`, the only place where
loosely-typed records are mapped onto domain models.  Malformed rows are
quarantined in ``catalog.rejected`` instead of propagating inward.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from pydantic import ValidationError

from trias_assessment.errors import CatalogError
from trias_assessment.models.catalog import Question, Theme

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def default_catalog_dir() -> Path:
    """``TRIAS_CATALOG_DIR`` if set, else ``catalog/v1`` under the repo root."""
    override = os.getenv("TRIAS_CATALOG_DIR")
    if override:
        return Path(override)
    return find_repo_root() / "catalog" / "v1"


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def theme_from_record(raw: dict[str, Any]) -> Theme:
    """Map a remote ``themes`` row onto a :class:`Theme`.

    Accepts ``sort_order`` as an alias for ``order`` (the column name used
    by the SQL backend, since ``order`` is a reserved word).
    """
    data = dict(raw)
    if "order" not in data and "sort_order" in data:
        data["order"] = data.pop("sort_order")
    return Theme.model_validate(data)


def question_from_record(raw: dict[str, Any]) -> Question:
    """Map a remote ``questions`` row onto a :class:`Question`.

    Accepts ``theme`` as an alias for ``theme_id``.
    """
    data = dict(raw)
    if "theme_id" not in data and "theme" in data:
        data["theme_id"] = data.pop("theme")
    return Question.model_validate(data)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class Catalog:
    """Ordered, validated themes and questions.

    Attributes:

        themes     — list[Theme] sorted by (order, id)
        questions  — list[Question] in catalog order (theme order, then position)
        rejected   — list[dict] of quarantined records (from_records only)

    Raises :class:`CatalogError` if the structure is unusable: no themes, a
    theme without questions, a question pointing at an unknown theme,
    duplicate ids, or two questions at the same position in a theme.
    """

    def __init__(self, themes: Iterable[Theme], questions: Iterable[Question]) -> None:
        self.themes: list[Theme] = sorted(themes, key=lambda t: (t.order, t.id))
        self.rejected: list[dict[str, Any]] = []

        if not self.themes:
            raise CatalogError("catalog has no themes")

        self._themes_by_id: dict[str, Theme] = {}
        for theme in self.themes:
            if theme.id in self._themes_by_id:
                raise CatalogError(f"duplicate theme id: {theme.id}")
            self._themes_by_id[theme.id] = theme

        self._questions_by_id: dict[str, Question] = {}
        self._by_theme: dict[str, list[Question]] = {t.id: [] for t in self.themes}
        for question in questions:
            if question.id in self._questions_by_id:
                raise CatalogError(f"duplicate question id: {question.id}")
            if question.theme_id not in self._by_theme:
                raise CatalogError(
                    f"question {question.id} references unknown theme {question.theme_id}"
                )
            self._questions_by_id[question.id] = question
            self._by_theme[question.theme_id].append(question)

        for theme_id, items in self._by_theme.items():
            if not items:
                raise CatalogError(f"theme {theme_id} has no questions")
            items.sort(key=lambda q: (q.position, q.id))
            for previous, question in zip(items, items[1:]):
                if question.position == previous.position:
                    raise CatalogError(
                        f"questions {previous.id} and {question.id} share position "
                        f"{question.position} in theme {theme_id}"
                    )

        self.questions: list[Question] = [
            q for t in self.themes for q in self._by_theme[t.id]
        ]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        theme_rows: Iterable[dict[str, Any]],
        question_rows: Iterable[dict[str, Any]],
    ) -> Catalog:
        """Build a catalog from loosely-typed remote rows.

        Rows that fail validation are logged and quarantined.  Questions
        whose theme was itself rejected are quarantined too, so a bad theme
        row never leaves orphaned questions behind.
        """
        rejected: list[dict[str, Any]] = []

        themes: list[Theme] = []
        for raw in theme_rows:
            try:
                themes.append(theme_from_record(raw))
            except (ValidationError, TypeError) as exc:
                logger.warning("Quarantined malformed theme record %r: %s", raw.get("id"), exc)
                rejected.append({"kind": "theme", "record": raw, "error": str(exc)})

        theme_ids = {t.id for t in themes}
        questions: list[Question] = []
        for raw in question_rows:
            try:
                question = question_from_record(raw)
            except (ValidationError, TypeError) as exc:
                logger.warning("Quarantined malformed question record %r: %s", raw.get("id"), exc)
                rejected.append({"kind": "question", "record": raw, "error": str(exc)})
                continue
            if question.theme_id not in theme_ids:
                logger.warning(
                    "Quarantined question %s: unknown theme %s", question.id, question.theme_id,
                )
                rejected.append({
                    "kind": "question",
                    "record": raw,
                    "error": f"unknown theme {question.theme_id}",
                })
                continue
            questions.append(question)

        catalog = cls(themes, questions)
        catalog.rejected = rejected
        return catalog

    @classmethod
    def from_yaml(cls, directory: str | Path | None = None) -> Catalog:
        """Load ``themes.yaml`` and ``questions.yaml`` from *directory*.

        Unlike :meth:`from_records`, a malformed entry here is a packaging
        bug and raises immediately.
        """
        base = Path(directory) if directory is not None else default_catalog_dir()
        try:
            themes = [Theme(**raw) for raw in load_yaml(base / "themes.yaml")]
            questions = [Question(**raw) for raw in load_yaml(base / "questions.yaml")]
        except ValidationError as exc:
            raise CatalogError(f"invalid catalog under {base}: {exc}") from exc
        catalog = cls(themes, questions)
        logger.info(
            "Catalog loaded from %s: %d themes, %d questions",
            base, len(catalog.themes), len(catalog.questions),
        )
        return catalog

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def theme_ids(self) -> list[str]:
        return [t.id for t in self.themes]

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def get_theme(self, theme_id: str) -> Theme:
        """Return a theme by id.  Raises ``KeyError`` if not found."""
        return self._themes_by_id[theme_id]

    def get_question(self, question_id: str) -> Question:
        """Return a question by id.  Raises ``KeyError`` if not found."""
        return self._questions_by_id[question_id]

    def has_question(self, question_id: str) -> bool:
        return question_id in self._questions_by_id

    def questions_for_theme(self, theme_id: str) -> list[Question]:
        """Questions of one theme, in declared position order."""
        return list(self._by_theme[theme_id])

    def theme_of(self, question_id: str) -> Theme:
        return self._themes_by_id[self._questions_by_id[question_id].theme_id]

    def __len__(self) -> int:
        return len(self.themes)

    def __repr__(self) -> str:
        return f"<Catalog(themes={len(self.themes)}, questions={len(self.questions)})>"

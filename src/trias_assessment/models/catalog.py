"""Pydantic models for the static catalog: themes and questions.

These models mirror the YAML files in ``catalog/v1/`` and the ``themes`` /
``questions`` tables of the remote store:

  - LocalizedText: a display string in every supported language
  - LocalizedList: a list of display strings in every supported language
  - Theme: an ordered grouping of questions, scored independently
  - Question: one Likert-scale question belonging to exactly one theme

Display fields (title, icon, color, tips, option labels) are opaque to the
engine; only ids, ordering and the option count drive progression and
scoring.
"""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, model_validator

from trias_assessment.constants import MIN_OPTION_COUNT

Language = Literal["en", "nl"]


class LocalizedText(BaseModel):
    """A string with one value per language."""

    model_config = ConfigDict(frozen=True)

    en: str
    nl: str

    def get(self, language: Language) -> str:
        return self.nl if language == "nl" else self.en


class LocalizedList(BaseModel):
    """A list of strings with one list per language."""

    model_config = ConfigDict(frozen=True)

    en: List[str]
    nl: List[str]

    def get(self, language: Language) -> list[str]:
        return list(self.nl if language == "nl" else self.en)


class Theme(BaseModel):
    """Theme definition from themes.yaml.

    ``order`` is the presentation order; ties are broken by ``id`` so the
    ordering is always total.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    order: int
    title: LocalizedText
    description: LocalizedText
    icon: str = ""
    color: str = ""
    tips: LocalizedList = LocalizedList(en=[], nl=[])


class Question(BaseModel):
    """Question definition from questions.yaml.

    ``position`` orders the question within its theme.  The option labels
    are display data; their count defines the answer range
    ``[0, option_count - 1]``.
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    theme_id: str
    position: int
    text: LocalizedText
    options: LocalizedList

    @model_validator(mode="after")
    def _chk(self):
        if len(self.options.en) != len(self.options.nl):
            raise ValueError(
                f"question {self.id}: en/nl option lists differ in length "
                f"({len(self.options.en)} vs {len(self.options.nl)})"
            )
        if len(self.options.en) < MIN_OPTION_COUNT:
            raise ValueError(
                f"question {self.id}: needs at least {MIN_OPTION_COUNT} options"
            )
        return self

    @property
    def option_count(self) -> int:
        return len(self.options.en)

    def accepts(self, selected_option: int) -> bool:
        """True if ``selected_option`` is a valid option index."""
        return 0 <= selected_option < self.option_count

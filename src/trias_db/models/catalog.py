"""Catalog tables — themes and questions.

Display text is stored as JSON objects keyed by language (``{"en": ...,
"nl": ...}``) so adding a language never needs a schema change.
"""

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trias_db.models.base import Base


class ThemeRow(Base):
    __tablename__ = "themes"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    # "order" is reserved in SQL
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[dict] = mapped_column(JSON, nullable=False)
    description: Mapped[dict] = mapped_column(JSON, nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    color: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    tips: Mapped[dict] = mapped_column(JSON, nullable=False)

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "sort_order": self.sort_order,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "tips": self.tips,
        }

    def __repr__(self) -> str:
        return f"<ThemeRow(id={self.id!r}, order={self.sort_order})>"


class QuestionRow(Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    theme_id: Mapped[str] = mapped_column(
        Text, ForeignKey("themes.id"), nullable=False, index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    text: Mapped[dict] = mapped_column(JSON, nullable=False)
    # {"en": [...], "nl": [...]}; the list length is the option count
    options: Mapped[dict] = mapped_column(JSON, nullable=False)

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "theme_id": self.theme_id,
            "position": self.position,
            "text": self.text,
            "options": self.options,
        }

    def __repr__(self) -> str:
        return f"<QuestionRow(id={self.id!r}, theme={self.theme_id!r})>"

"""Report data for a completed assessment.

Collects everything a document renderer needs (titles, localised status
labels, colours, tips, disclaimer) into one pydantic model.  Rendering
itself (PDF, HTML) happens elsewhere.
"""

from datetime import datetime, timezone

from pydantic import BaseModel

from trias_assessment.catalog import Catalog
from trias_assessment.models.catalog import Language, LocalizedText
from trias_assessment.models.session import Result, ResultStatus

REPORT_TITLE = LocalizedText(
    en="Child Development Assessment Report",
    nl="Rapport Kinderontwikkelingsbeoordeling",
)

DISCLAIMER = LocalizedText(
    en=(
        "Disclaimer: This assessment is not a diagnostic tool. If you have "
        "concerns about your child's development, please consult a "
        "healthcare professional."
    ),
    nl=(
        "Disclaimer: Deze beoordeling is geen diagnostisch hulpmiddel. Als u "
        "zorgen heeft over de ontwikkeling van uw kind, raadpleeg dan een "
        "zorgprofessional."
    ),
)

STATUS_LABELS: dict[ResultStatus, LocalizedText] = {
    ResultStatus.NORMAL: LocalizedText(en="Normal", nl="Normaal"),
    ResultStatus.MILD: LocalizedText(en="Mild Concern", nl="Lichte Zorg"),
    ResultStatus.MODERATE: LocalizedText(en="Moderate Concern", nl="Matige Zorg"),
    ResultStatus.SEVERE: LocalizedText(en="Significant Concern", nl="Aanzienlijke Zorg"),
}

STATUS_COLORS: dict[ResultStatus, str] = {
    ResultStatus.NORMAL: "#27AE60",
    ResultStatus.MILD: "#56CCF2",
    ResultStatus.MODERATE: "#F2994A",
    ResultStatus.SEVERE: "#EB5757",
}


class ReportSection(BaseModel):
    """One theme's block in the report."""

    theme_id: str
    title: str
    description: str
    icon: str
    theme_color: str
    score: int
    status: ResultStatus
    status_label: str
    status_color: str
    tips: list[str]


class AssessmentReport(BaseModel):
    title: str
    language: Language
    generated_at: datetime
    user_name: str | None = None
    session_id: str | None = None
    sections: list[ReportSection]
    disclaimer: str


def status_label(status: ResultStatus, language: Language) -> str:
    return STATUS_LABELS[status].get(language)


def build_report(
    catalog: Catalog,
    results: list[Result],
    language: Language,
    *,
    user_name: str | None = None,
    session_id: str | None = None,
    generated_at: datetime | None = None,
) -> AssessmentReport:
    """Assemble report data for *results* in catalog theme order.

    Results for themes the catalog does not know are skipped, since there
    is no title or description to show for them.
    """
    by_theme = {r.theme_id: r for r in results}
    sections: list[ReportSection] = []
    for theme in catalog.themes:
        result = by_theme.get(theme.id)
        if result is None:
            continue
        sections.append(ReportSection(
            theme_id=theme.id,
            title=theme.title.get(language),
            description=theme.description.get(language),
            icon=theme.icon,
            theme_color=theme.color,
            score=result.score,
            status=result.status,
            status_label=status_label(result.status, language),
            status_color=STATUS_COLORS[result.status],
            tips=theme.tips.get(language),
        ))

    return AssessmentReport(
        title=REPORT_TITLE.get(language),
        language=language,
        generated_at=generated_at or datetime.now(timezone.utc),
        user_name=user_name,
        session_id=session_id,
        sections=sections,
        disclaimer=DISCLAIMER.get(language),
    )

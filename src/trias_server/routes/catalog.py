"""Catalog endpoints — themes and questions.

Read-only and public: the catalog is the same for every user, so these
endpoints do not require the ``X-User-ID`` header.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from trias_assessment.catalog import Catalog

from trias_server.dependencies import get_catalog

router = APIRouter(prefix="/catalog", tags=["catalog"])


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("/themes")
def list_themes(
    catalog: Catalog = Depends(get_catalog),
) -> list[dict]:
    """Return all themes in catalog order, with both languages."""
    return [
        {
            **theme.model_dump(),
            "question_count": len(catalog.questions_for_theme(theme.id)),
        }
        for theme in catalog.themes
    ]


@router.get("/questions")
def list_questions(
    catalog: Catalog = Depends(get_catalog),
    theme_id: str | None = Query(None),
) -> list[dict]:
    """Return questions in catalog order, optionally for one theme only."""
    if theme_id is None:
        questions = catalog.questions
    else:
        if theme_id not in catalog.theme_ids:
            raise HTTPException(status_code=404, detail=f"Unknown theme: {theme_id}")
        questions = catalog.questions_for_theme(theme_id)
    return [
        {**q.model_dump(), "option_count": q.option_count}
        for q in questions
    ]

"""Assessment endpoints — drive the caller's session.

Every endpoint acts on the engine of the user named by ``X-User-ID`` and
returns the language-resolved :class:`AssessmentView` of the resulting
state, so a client can render the next screen from one response.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from trias_assessment.engine import AssessmentEngine
from trias_assessment.errors import ErrorReason, PreconditionError
from trias_assessment.models.session import AssessmentView
from trias_assessment.report import AssessmentReport, build_report

from trias_server.dependencies import get_engine

router = APIRouter(prefix="/assessment", tags=["assessment"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class AnswerRequest(BaseModel):
    """Body for POST /assessment/answer."""
    question_id: str
    selected_option: int


class LanguageRequest(BaseModel):
    """Body for PUT /assessment/language."""
    language: str


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("")
def get_assessment(engine: AssessmentEngine = Depends(get_engine)) -> AssessmentView:
    """Current screen: theme, question, selected option, progress, results."""
    return engine.view()


@router.post("/start", status_code=201)
async def start_assessment(engine: AssessmentEngine = Depends(get_engine)) -> AssessmentView:
    """Open a new session.  409 if one is in progress or completed."""
    await engine.start()
    return engine.view()


@router.post("/answer")
async def answer_question(
    body: AnswerRequest,
    engine: AssessmentEngine = Depends(get_engine),
) -> AssessmentView:
    """Record an answer for the current question.

    Responds once the answer is stored locally; the remote upsert runs in
    the background.
    """
    engine.answer(body.question_id, body.selected_option)
    return engine.view()


@router.post("/advance")
async def advance_assessment(engine: AssessmentEngine = Depends(get_engine)) -> AssessmentView:
    """Move to the next question, or complete after the last one.

    A failed completion responds 502 and leaves the cursor on the last
    question; posting again retries it.
    """
    await engine.advance()
    return engine.view()


@router.post("/reset")
async def reset_assessment(engine: AssessmentEngine = Depends(get_engine)) -> AssessmentView:
    """Discard the local session.  Remote records are kept."""
    engine.reset()
    return engine.view()


@router.put("/language")
async def set_language(
    body: LanguageRequest,
    engine: AssessmentEngine = Depends(get_engine),
) -> AssessmentView:
    engine.set_language(body.language)
    return engine.view()


@router.get("/report")
def get_report(engine: AssessmentEngine = Depends(get_engine)) -> AssessmentReport:
    """Report data for the completed session.  409 before completion."""
    if not engine.is_completed():
        raise PreconditionError(
            ErrorReason.INVALID_STATE, "report is only available for a completed session",
        )
    user = engine.user
    return build_report(
        engine.catalog,
        engine.results(),
        engine.language,
        user_name=user.name if user is not None else None,
        session_id=engine.session_id,
    )

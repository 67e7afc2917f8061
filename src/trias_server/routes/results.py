"""Results endpoints — the caller's most recent completed assessment."""

from fastapi import APIRouter, Depends, HTTPException

from trias_assessment.engine import AssessmentEngine
from trias_assessment.models.session import CompletedSession

from trias_server.dependencies import get_engine

router = APIRouter(prefix="/results", tags=["results"])


@router.get("/latest")
async def latest_results(engine: AssessmentEngine = Depends(get_engine)) -> CompletedSession:
    """Fetch from the remote store.  404 if the user never completed one."""
    completed = await engine.fetch_results()
    if completed is None:
        raise HTTPException(status_code=404, detail="No completed assessment")
    return completed

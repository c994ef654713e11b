from typing import Optional

from fastapi import APIRouter, Depends

from ..deps import get_orchestrator, get_store, get_view, http_error
from ..errors import ArtyError
from ..orchestrator import AnalysisOrchestrator
from ..schemas import AnalysisOut, AnalysisRequest, FeedbackResult, RevisionRequest, RevisionResult
from ..store import AnalysisStore, AnalysisView

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("", response_model=AnalysisOut)
async def create_analysis(
    body: AnalysisRequest,
    replaces: Optional[str] = None,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    store: AnalysisStore = Depends(get_store),
):
    """Run a fresh analysis. ``replaces`` names the view the user is leaving, which is discarded."""
    try:
        result = await orchestrator.run_analysis(body)
    except ArtyError as e:
        raise http_error(e)
    view = store.open(body, result, replaces=replaces)
    return AnalysisOut(analysis_id=view.id, result=result)


@router.get("/{analysis_id}", response_model=AnalysisOut)
def get_analysis(view: AnalysisView = Depends(get_view)):
    return AnalysisOut(analysis_id=view.id, result=view.result)


@router.delete("/{analysis_id}")
def discard_analysis(analysis_id: str, store: AnalysisStore = Depends(get_store)):
    # back to the input step: the chat goes with the view
    return {"discarded": store.discard(analysis_id)}


@router.post("/{analysis_id}/revision", response_model=RevisionResult)
async def revise_resume(
    body: RevisionRequest,
    view: AnalysisView = Depends(get_view),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.revise_resume(view.result, view.request.candidate_name, body.communication_style)
    except ArtyError as e:
        raise http_error(e)


@router.post("/{analysis_id}/feedback", response_model=FeedbackResult)
async def personalized_feedback(
    view: AnalysisView = Depends(get_view),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.personalized_feedback(view.result, view.request.candidate_name)
    except ArtyError as e:
        raise http_error(e)

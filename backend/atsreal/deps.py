"""FastAPI dependency providers. Tests replace these through ``app.dependency_overrides``."""
from functools import lru_cache

from fastapi import Depends, HTTPException

from .ai_services import AIService, get_ai_service
from .chat import ChatSessionManager
from .config import Settings, get_settings
from .errors import (
    ArtyError, BackendUnavailable, ContentPolicyBlocked, OperationFailed, OutputSchemaViolation,
    SessionBusy, ValidationError,
)
from .orchestrator import AnalysisOrchestrator
from .store import AnalysisStore, AnalysisView


def get_ai(settings: Settings = Depends(get_settings)) -> AIService:
    return get_ai_service(settings)


@lru_cache(maxsize=1)
def _shared_store() -> AnalysisStore:
    return AnalysisStore(max_views=get_settings().max_open_views)


def get_store() -> AnalysisStore:
    return _shared_store()


def get_orchestrator(ai: AIService = Depends(get_ai), settings: Settings = Depends(get_settings)) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(ai, settings)


def get_chat_manager(ai: AIService = Depends(get_ai), settings: Settings = Depends(get_settings)) -> ChatSessionManager:
    return ChatSessionManager(ai, settings)


def get_view(analysis_id: str, store: AnalysisStore = Depends(get_store)) -> AnalysisView:
    view = store.get(analysis_id)
    if view is None:
        raise HTTPException(404, "analysis not found")
    return view


def http_error(e: ArtyError) -> HTTPException:
    """Map a core error onto the HTTP status the presentation layer shows."""
    cause = e.cause if isinstance(e, OperationFailed) else e
    if isinstance(cause, SessionBusy):
        status = 409
    elif isinstance(cause, ValidationError):
        status = 400
    elif isinstance(cause, ContentPolicyBlocked):
        status = 422
    elif isinstance(cause, OutputSchemaViolation):
        status = 502
    elif isinstance(cause, BackendUnavailable):
        status = 503
    else:
        status = 500
    return HTTPException(status, str(e))

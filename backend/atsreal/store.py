import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from .chat import ChatSession
from .schemas import AnalysisRequest, AnalysisResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_VIEWS = 100


@dataclass
class AnalysisView:
    """Everything one results view owns: the request, its result and the chat."""
    id: str
    request: AnalysisRequest
    result: AnalysisResult
    chat: ChatSession = field(init=False)

    def __post_init__(self):
        self.chat = ChatSession.for_result(self.result)


class AnalysisStore:
    """Process-local registry of open results views. Nothing is persisted.

    At most ``max_views`` views are kept; opening one more evicts the oldest.
    """

    def __init__(self, max_views: int = DEFAULT_MAX_VIEWS):
        if max_views < 1:
            raise ValueError("max_views must be at least 1")
        self.max_views = max_views
        self._views: "OrderedDict[str, AnalysisView]" = OrderedDict()

    def open(self, request: AnalysisRequest, result: AnalysisResult, replaces: Optional[str] = None) -> AnalysisView:
        """Open a view for a fresh result, dropping ``replaces`` if the caller had one open."""
        if replaces:
            self.discard(replaces)
        view = AnalysisView(id=uuid.uuid4().hex, request=request, result=result)
        self._views[view.id] = view
        while len(self._views) > self.max_views:
            evicted, _ = self._views.popitem(last=False)
            logger.info("Evicted analysis view %s (limit %d)", evicted, self.max_views)
        return view

    def get(self, view_id: str) -> Optional[AnalysisView]:
        return self._views.get(view_id)

    def discard(self, view_id: str) -> bool:
        return self._views.pop(view_id, None) is not None

    def __len__(self) -> int:
        return len(self._views)

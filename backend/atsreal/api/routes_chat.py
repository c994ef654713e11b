from typing import List

from fastapi import APIRouter, Depends

from ..chat import ChatSessionManager
from ..deps import get_chat_manager, get_view, http_error
from ..errors import ArtyError
from ..schemas import ChatAnswerOut, ChatQuestionIn, ChatTurn
from ..store import AnalysisView

router = APIRouter(prefix="/analysis/{analysis_id}/chat", tags=["chat"])


@router.get("", response_model=List[ChatTurn])
def get_history(view: AnalysisView = Depends(get_view)):
    return view.chat.history()


@router.post("", response_model=ChatAnswerOut)
async def ask_follow_up(
    body: ChatQuestionIn,
    view: AnalysisView = Depends(get_view),
    manager: ChatSessionManager = Depends(get_chat_manager),
):
    try:
        turn = await manager.ask_follow_up(view.chat, body.question)
    except ArtyError as e:
        raise http_error(e)
    return ChatAnswerOut(turn=turn, history=view.chat.history())

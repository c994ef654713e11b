"""
Follow-up chat about one resume / job description pair.

A session moves Idle -> AwaitingResponse on submit and back to Idle when the
backend answers or fails. The question and the answer are appended together
on success only; a failed request leaves the history exactly as it was.
"""
import logging
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .ai_services import AIService
from .config import Settings
from .errors import ArtyError, ChatFailed, SessionBusy, ValidationError
from .prompts import ASK_ARTY
from .schemas import AnalysisResult, ChatAnswer, ChatInput, ChatRole, ChatTurn

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    idle = "idle"
    awaiting_response = "awaiting_response"


class ChatSession:
    def __init__(self, resume_text: str, job_description_text: str):
        self.resume_text = resume_text
        self.job_description_text = job_description_text
        self.state = SessionState.idle
        self._turns: List[ChatTurn] = []

    @classmethod
    def for_result(cls, result: AnalysisResult) -> "ChatSession":
        return cls(result.resume_text, result.job_description_text)

    @property
    def turns(self) -> Tuple[ChatTurn, ...]:
        return tuple(self._turns)

    def history(self) -> List[ChatTurn]:
        return list(self._turns)

    def record_exchange(self, question: ChatTurn, answer: ChatTurn) -> None:
        self._turns.extend((question, answer))

    def __len__(self) -> int:
        return len(self._turns)


def history_window(turns: Sequence[ChatTurn], limit: int) -> List[ChatTurn]:
    """Most recent ``limit`` turns, trimmed so the window opens on a user turn."""
    if limit <= 0:
        return []
    window = list(turns[-limit:])
    while window and window[0].role != ChatRole.user:
        window.pop(0)
    return window


class ChatSessionManager:
    def __init__(self, ai: AIService, settings: Settings):
        self.ai = ai
        self.settings = settings

    def build_input(self, session: ChatSession, question: str) -> ChatInput:
        return ChatInput(
            question=question,
            resume_text=session.resume_text,
            job_description_text=session.job_description_text,
            chat_history=history_window(session.turns, self.settings.chat_history_limit),
        )

    async def ask_follow_up(self, session: ChatSession, question: Optional[str]) -> ChatTurn:
        """Answer ``question`` and record the exchange; returns the assistant turn."""
        question = (question or "").strip()
        if not question:
            raise ValidationError("Question cannot be empty.")
        if session.state is SessionState.awaiting_response:
            raise SessionBusy("Arty is still answering the previous question.")

        session.state = SessionState.awaiting_response
        try:
            answer: ChatAnswer = await self.ai.generate(ASK_ARTY, self.build_input(session, question))
        except ArtyError as e:
            logger.warning("Follow-up failed after %d turns: %s: %s", len(session), type(e).__name__, e)
            raise ChatFailed(e) from e
        finally:
            session.state = SessionState.idle

        reply = ChatTurn(role=ChatRole.assistant, content=answer.answer)
        session.record_exchange(ChatTurn(role=ChatRole.user, content=question), reply)
        return reply

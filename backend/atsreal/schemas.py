import math
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EmploymentStatus(str, Enum):
    employed = "employed"
    unemployed = "unemployed"
    student = "student"


class ChatRole(str, Enum):
    user = "user"
    assistant = "assistant"


# Presentation-facing models

class AnalysisRequest(BaseModel):
    candidate_name: str
    employment_status: EmploymentStatus
    resume_text: str
    job_description_text: str
    goals: Optional[str] = None

    @field_validator("candidate_name", "resume_text", "job_description_text")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("goals")
    @classmethod
    def _blank_goals(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class ScoreResult(BaseModel):
    ats_pass_score: float = Field(ge=0, le=100, description="Will this get past the ATS bot? (0-100)")
    human_recruiter_score: float = Field(ge=0, le=100, description="Will a human recruiter want an interview? (0-100)")
    ats_real_score: float = Field(ge=0, le=100, description="ATS pass x 0.4 + human recruiter x 0.6 (0-100)")

    def expected_real_score(self) -> int:
        # half-up, same as the backend's own arithmetic
        return math.floor(self.ats_pass_score * 0.4 + self.human_recruiter_score * 0.6 + 0.5)

    def is_consistent(self, tolerance: float = 1.0) -> bool:
        return abs(self.ats_real_score - self.expected_real_score()) <= tolerance


class SuggestionResult(BaseModel):
    suggested_edits: str = Field(description="Markdown list of before/after edit pairs.")


class RatingExplanation(BaseModel):
    positive_factors: str = Field(description="Markdown bullets: why a recruiter would move this resume forward.")
    negative_factors: str = Field(description="Markdown bullets: why a recruiter would pass on this resume.")


class AnalysisResult(BaseModel):
    scores: ScoreResult
    suggestions: SuggestionResult
    rating_explanation: RatingExplanation
    resume_text: str
    job_description_text: str
    warnings: List[str] = []


class ChatTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str


class RevisionResult(BaseModel):
    revised_summary: str = Field(description="Rewritten resume summary, under 65 words.")
    enhanced_key_terms: List[str] = Field(description="Job description terms to add or emphasise.")
    explanation: str = Field(description="Short explanation of the summary changes.")


class FeedbackResult(BaseModel):
    feedback: str = Field(description="2-3 markdown bullet points of direct feedback.")


# Template input models

class ScoreInput(BaseModel):
    resume_text: str = Field(min_length=1)
    job_description_text: str = Field(min_length=1)


class SuggestionInput(BaseModel):
    resume_text: str = Field(min_length=1)
    job_description_text: str = Field(min_length=1)
    ats_pass_score: float
    human_recruiter_score: float
    user_info: str
    employment_status: EmploymentStatus


class RatingInput(BaseModel):
    resume_text: str = Field(min_length=1)
    job_description_text: str = Field(min_length=1)
    ats_real_score: float


class ChatInput(BaseModel):
    question: str = Field(min_length=1)
    resume_text: str = Field(min_length=1)
    job_description_text: str = Field(min_length=1)
    chat_history: List[ChatTurn] = []


class ChatAnswer(BaseModel):
    answer: str = Field(description="Markdown answer to the user's question.")


class RevisionInput(BaseModel):
    resume_text: str = Field(min_length=1)
    job_description_text: str = Field(min_length=1)
    user_name: str
    communication_style: Literal["casual", "formal"]


class FeedbackInput(BaseModel):
    user_name: str
    ats_pass_score: float
    human_recruiter_score: float
    strengths: str
    weaknesses: str


# HTTP bodies

class AnalysisOut(BaseModel):
    analysis_id: str
    result: AnalysisResult


class ChatQuestionIn(BaseModel):
    question: str


class ChatAnswerOut(BaseModel):
    turn: ChatTurn
    history: List[ChatTurn]


class RevisionRequest(BaseModel):
    communication_style: Literal["casual", "formal"] = "casual"

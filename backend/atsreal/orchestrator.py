"""
Analysis orchestration.

Score first, then ask for suggestions and the rating explanation at the same
time. Any failure aborts the whole analysis; there is no partial result.
"""
import asyncio
import logging
from typing import Any, Awaitable, List, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from .ai_services import AIService
from .config import Settings
from .errors import AnalysisFailed, ArtyError, ValidationError
from .prompts import (
    ATS_SCORE, ENHANCEMENT_SUGGESTIONS, PERSONALIZED_FEEDBACK, RESUME_REVISION, WHY_THIS_RATING,
)
from .schemas import (
    AnalysisRequest, AnalysisResult, FeedbackInput, FeedbackResult, RatingInput,
    RevisionInput, RevisionResult, ScoreInput, ScoreResult, SuggestionInput,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_INFO = "Looking for a new role."


def validate_request(request: Union[AnalysisRequest, Mapping[str, Any]], settings: Settings) -> AnalysisRequest:
    """Normalize an analysis request and enforce the length rules."""
    if not isinstance(request, AnalysisRequest):
        try:
            request = AnalysisRequest.model_validate(request)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid analysis request: {e}") from e

    if not request.resume_text:
        raise ValidationError("Resume text cannot be empty.")
    if not request.job_description_text:
        raise ValidationError("Job description cannot be empty.")
    if len(request.job_description_text) < settings.min_jd_length:
        raise ValidationError(f"Job description must be at least {settings.min_jd_length} characters.")
    if len(request.resume_text) > settings.max_text_length:
        raise ValidationError(f"Resume exceeds maximum length of {settings.max_text_length} characters.")
    if len(request.job_description_text) > settings.max_text_length:
        raise ValidationError(f"Job description exceeds maximum length of {settings.max_text_length} characters.")
    return request


async def gather_all_or_nothing(*aws: Awaitable[Any]) -> List[Any]:
    """Await every coroutine concurrently; on the first failure cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        # let cancelled siblings unwind before the caller sees the error
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class AnalysisOrchestrator:
    def __init__(self, ai: AIService, settings: Settings):
        self.ai = ai
        self.settings = settings

    async def run_analysis(self, request: Union[AnalysisRequest, Mapping[str, Any]]) -> AnalysisResult:
        # validation problems surface as-is: nothing has been sent yet
        request = validate_request(request, self.settings)
        try:
            return await self._run(request)
        except ArtyError as e:
            logger.error("Analysis failed: %s: %s", type(e).__name__, e)
            raise AnalysisFailed(e) from e

    async def _run(self, request: AnalysisRequest) -> AnalysisResult:
        scores: ScoreResult = await self.ai.generate(
            ATS_SCORE,
            ScoreInput(resume_text=request.resume_text, job_description_text=request.job_description_text),
        )

        warnings: List[str] = []
        if not scores.is_consistent():
            expected = scores.expected_real_score()
            logger.warning(
                "ATS real score %s does not match 0.4 x %s + 0.6 x %s = %s",
                scores.ats_real_score, scores.ats_pass_score, scores.human_recruiter_score, expected,
            )
            warnings.append(
                f"ATS real score {scores.ats_real_score:g} differs from the expected {expected}."
            )

        suggestions, rating = await gather_all_or_nothing(
            self.ai.generate(
                ENHANCEMENT_SUGGESTIONS,
                SuggestionInput(
                    resume_text=request.resume_text,
                    job_description_text=request.job_description_text,
                    ats_pass_score=scores.ats_pass_score,
                    human_recruiter_score=scores.human_recruiter_score,
                    user_info=request.goals or DEFAULT_USER_INFO,
                    employment_status=request.employment_status,
                ),
            ),
            self.ai.generate(
                WHY_THIS_RATING,
                RatingInput(
                    resume_text=request.resume_text,
                    job_description_text=request.job_description_text,
                    ats_real_score=scores.ats_real_score,
                ),
            ),
        )

        return AnalysisResult(
            scores=scores,
            suggestions=suggestions,
            rating_explanation=rating,
            resume_text=request.resume_text,
            job_description_text=request.job_description_text,
            warnings=warnings,
        )

    async def revise_resume(self, result: AnalysisResult, user_name: str, communication_style: str = "casual") -> RevisionResult:
        """Rewrite the summary and list key terms to emphasise."""
        try:
            return await self.ai.generate(
                RESUME_REVISION,
                RevisionInput(
                    resume_text=result.resume_text,
                    job_description_text=result.job_description_text,
                    user_name=user_name or "there",
                    communication_style=communication_style,
                ),
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid revision request: {e}") from e
        except ValidationError:
            raise
        except ArtyError as e:
            logger.error("Resume revision failed: %s: %s", type(e).__name__, e)
            raise AnalysisFailed(e) from e

    async def personalized_feedback(self, result: AnalysisResult, user_name: str) -> FeedbackResult:
        try:
            return await self.ai.generate(
                PERSONALIZED_FEEDBACK,
                FeedbackInput(
                    user_name=user_name or "there",
                    ats_pass_score=result.scores.ats_pass_score,
                    human_recruiter_score=result.scores.human_recruiter_score,
                    strengths=result.rating_explanation.positive_factors,
                    weaknesses=result.rating_explanation.negative_factors,
                ),
            )
        except ValidationError:
            raise
        except ArtyError as e:
            logger.error("Personalized feedback failed: %s: %s", type(e).__name__, e)
            raise AnalysisFailed(e) from e

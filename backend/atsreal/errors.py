"""Error types shared by the template registry, invoker, orchestrator and chat."""
from typing import Optional


class ArtyError(Exception):
    """Base class for every error raised by the analysis core."""


class ValidationError(ArtyError):
    """Input was rejected locally, before any call to the generative backend."""


class TemplateNotFound(ArtyError, KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"No prompt template named {self.name!r}"


class GenerationError(ArtyError):
    """A single backend call failed."""

    def __init__(self, message: str, template: Optional[str] = None):
        super().__init__(message)
        self.template = template


class BackendUnavailable(GenerationError):
    """Network failure, timeout, rate limit or any other infrastructure error."""


class ContentPolicyBlocked(GenerationError):
    """The backend's safety filter refused the prompt or the generation."""


class OutputSchemaViolation(GenerationError):
    """The answer could not be parsed into the template's output model."""


class SessionBusy(ValidationError):
    """A follow-up question was submitted while another one is still in flight."""


class OperationFailed(ArtyError):
    """User-facing wrapper around the first error that aborted an operation."""

    prefix = "AI request failed."

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"{self.prefix} {cause}")


class AnalysisFailed(OperationFailed):
    prefix = "AI analysis failed."


class ChatFailed(OperationFailed):
    prefix = "AI chat failed."

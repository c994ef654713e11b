import asyncio
import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure backend package is importable
backend_root = Path(__file__).resolve().parents[1]
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

from atsreal.config import Settings  # noqa: E402
from atsreal.prompts import get_template  # noqa: E402

RESUME = (
    "Alex Doe - Software Engineer at Initech (2019-present)\n"
    "- 5 years Python, led 3 projects\n"
    "- Built FastAPI services handling 2M requests/day\n"
    "- Cut CI time 40% by parallelising the test suite\n"
)
JOB_DESCRIPTION = (
    "Senior Python Engineer, 5+ years required. You will design and operate backend services in Python, "
    "own APIs end to end, mentor engineers and work with product on the roadmap. FastAPI and PostgreSQL a plus."
)

SCORES = {"ats_pass_score": 70, "human_recruiter_score": 80, "ats_real_score": 76}
SUGGESTIONS = {
    "suggested_edits": (
        "**Before:** \"5 years Python, led 3 projects\"\n"
        "**After:** \"Led 3 Python projects over 5 years, shipping FastAPI services used by 2M requests/day\"\n"
        "**Why:** proves impact for the recruiter"
    )
}
RATING = {
    "positive_factors": "- Direct Python and FastAPI match\n- Metrics on CI work",
    "negative_factors": "- No PostgreSQL mention\n- Mentoring not shown",
}
ANSWERS = {
    "ats_score": SCORES,
    "enhancement_suggestions": SUGGESTIONS,
    "why_this_rating": RATING,
    "ask_arty": {"answer": "Add PostgreSQL if you have used it."},
    "resume_revision": {
        "revised_summary": "Python engineer who ships fast, reliable APIs.",
        "enhanced_key_terms": ["PostgreSQL", "mentoring"],
        "explanation": "Led with impact and added the JD's core stack.",
    },
    "personalized_feedback": {"feedback": "- Mention PostgreSQL\n- Show mentoring"},
}


class FakeAIService:
    """Stands in for AIService: answers per template name and records every call."""

    def __init__(self, answers=None, delays=None):
        self.answers = dict(ANSWERS if answers is None else answers)
        self.delays = delays or {}
        self.calls = []
        self.completed = []

    async def generate(self, template, data):
        name = template if isinstance(template, str) else template.name
        tpl = get_template(name)
        self.calls.append((name, tpl.validate_input(data)))
        await asyncio.sleep(self.delays.get(name, 0))
        answer = self.answers[name]
        if isinstance(answer, Exception):
            raise answer
        self.completed.append(name)
        return tpl.output_model.model_validate(answer)

    def names(self):
        return [name for name, _ in self.calls]


def chat_completion(content, finish_reason="stop"):
    if not isinstance(content, str):
        content = json.dumps(content)
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}]}


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body or {})

    def json(self):
        if self._body is None:
            raise ValueError("no json body")
        return self._body


class FakeBackend:
    """Queue of responses (or exceptions) served to a patched httpx.AsyncClient."""

    def __init__(self):
        self.responses = []
        self.requests = []

    def reply(self, content, finish_reason="stop"):
        self.responses.append(FakeResponse(200, chat_completion(content, finish_reason)))

    def fail(self, status_code, text=""):
        self.responses.append(FakeResponse(status_code, None, text))

    def respond(self, body):
        """Serve ``body`` as-is with a 200, whatever its shape."""
        self.responses.append(FakeResponse(200, body))

    def raise_(self, exc):
        self.responses.append(exc)

    def prompts(self):
        return [r["json"]["messages"][-1]["content"] for r in self.requests]


@pytest.fixture
def settings():
    return Settings(api_key="test-key", base_url="https://ai.example.test/v1", model="test-model")


@pytest.fixture
def fake_backend(monkeypatch):
    from atsreal import ai_services

    backend = FakeBackend()

    class FakeAsyncClient:
        def __init__(self, *args, **kwargs):
            self.kwargs = kwargs

        async def __aenter__(self):
            return self

        async def __aexit__(self, exc_type, exc, tb):
            return False

        async def post(self, url, json=None, headers=None):
            backend.requests.append({"url": url, "json": json, "headers": headers, "timeout": self.kwargs.get("timeout")})
            item = backend.responses.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

    monkeypatch.setattr(ai_services.httpx, "AsyncClient", FakeAsyncClient)
    return backend


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def client(monkeypatch, settings, fake_ai):
    """TestClient with the AI service and settings replaced and a fresh view store."""
    # Avoid accidental usage of real API keys during tests
    monkeypatch.setenv("AI_API_KEY", "")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")

    from atsreal import deps
    from atsreal.config import get_settings
    from atsreal.main import app
    from atsreal.store import AnalysisStore

    store = AnalysisStore()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[deps.get_ai] = lambda: fake_ai
    app.dependency_overrides[deps.get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

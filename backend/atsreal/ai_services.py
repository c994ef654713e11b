"""
AI Services Module for ATS Real Score
Runs one prompt template against an OpenAI-compatible Chat Completions backend
and validates the answer against the template's output model.
"""
import json
import logging
import re
import time
from typing import Any, Dict, Mapping, Optional, Union

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import Settings, get_settings
from .errors import BackendUnavailable, ContentPolicyBlocked, OutputSchemaViolation
from .prompts import PromptTemplate, get_template, render_prompt, schema_instructions

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS = {408, 429, 500, 502, 503, 504}
_BLOCKED_FINISH_REASONS = {"content_filter", "safety", "prohibited_content", "blocklist", "spii"}
_POLICY_MARKERS = ("safety", "content policy", "content_policy", "content management policy", "blocked")


def clean_json(raw: str) -> str:
    """Strip markdown fences and whitespace around a JSON answer."""
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw)
    raw = re.sub(r"\s*```$", "", raw)
    return raw.strip()


class AIService:
    """Single-call invoker: template + input in, validated output model out.

    Every call is a fresh generation. Nothing is cached and nothing is retried;
    the caller decides what to do with a failure.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.api_key = settings.api_key
        self.model = settings.model
        self.base_url = settings.base_url

    async def generate(
        self,
        template: Union[PromptTemplate, str],
        data: Union[BaseModel, Mapping[str, Any]],
    ) -> BaseModel:
        if isinstance(template, str):
            template = get_template(template)
        # Raises ValidationError before any network I/O
        prompt = render_prompt(template, data)

        started = time.monotonic()
        body = await self._call_ai_api_http(template, prompt)
        content = self._extract_content(template, body)
        result = self._parse_output(template, content)
        logger.info(
            "Generated %s (model=%s) in %.2fs, prompt %d chars",
            template.name, self.model, time.monotonic() - started, len(prompt),
        )
        return result

    def _payload(self, template: PromptTemplate, prompt: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": schema_instructions(template)},
                {"role": "user", "content": prompt},
            ],
            "temperature": template.temperature,
            "max_tokens": self.settings.max_tokens,
            "response_format": {"type": "json_object"},
        }
        if template.safety_settings:
            payload["extra_body"] = {
                "google": {
                    "safety_settings": [
                        {"category": category, "threshold": threshold}
                        for category, threshold in template.safety_settings
                    ]
                }
            }
        return payload

    async def _call_ai_api_http(self, template: PromptTemplate, prompt: str) -> Any:
        """HTTP call to OpenAI-compatible endpoint (local or hosted)"""
        if not self.api_key and not self.settings.is_local_backend:
            raise BackendUnavailable("No API key configured", template=template.name)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(timeout=self.settings.timeout_seconds) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=self._payload(template, prompt),
                )
        except httpx.TimeoutException as e:
            logger.warning("%s timed out after %ss", template.name, self.settings.timeout_seconds)
            raise BackendUnavailable(f"Request timed out: {e}", template=template.name) from e
        except httpx.HTTPError as e:
            logger.warning("%s transport error: %s", template.name, e)
            raise BackendUnavailable(f"Could not reach the AI service: {e}", template=template.name) from e

        if response.status_code != 200:
            text = response.text or ""
            logger.error("%s failed: %s %s", template.name, response.status_code, text[:500])
            if response.status_code == 400 and any(m in text.lower() for m in _POLICY_MARKERS):
                raise ContentPolicyBlocked(f"Request blocked by content policy: {text[:200]}", template=template.name)
            if response.status_code in _TRANSIENT_STATUS:
                raise BackendUnavailable(f"API call failed: {response.status_code}", template=template.name)
            raise BackendUnavailable(f"API call failed: {response.status_code} {text[:200]}", template=template.name)

        try:
            return response.json()
        except ValueError as e:
            raise OutputSchemaViolation("AI service returned a non-JSON body", template=template.name) from e

    def _extract_content(self, template: PromptTemplate, body: Any) -> str:
        if not isinstance(body, dict):
            raise OutputSchemaViolation(
                f"AI service returned a {type(body).__name__} body, expected an object", template=template.name
            )
        feedback = body.get("promptFeedback") or body.get("prompt_feedback") or {}
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            raise ContentPolicyBlocked(f"Prompt blocked: {feedback['blockReason']}", template=template.name)

        choices = body.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise OutputSchemaViolation("AI service returned no choices", template=template.name)
        choice = choices[0]
        if not isinstance(choice, dict):
            raise OutputSchemaViolation("AI service returned a malformed choice", template=template.name)
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise OutputSchemaViolation("AI service returned a malformed message", template=template.name)

        finish_reason = choice.get("finish_reason")
        finish_reason = finish_reason.lower() if isinstance(finish_reason, str) else ""
        if finish_reason in _BLOCKED_FINISH_REASONS:
            raise ContentPolicyBlocked(f"Generation stopped by safety filter ({finish_reason})", template=template.name)
        if message.get("refusal"):
            raise ContentPolicyBlocked(f"Model refused: {message['refusal']}", template=template.name)

        content = message.get("content")
        if not content:
            raise OutputSchemaViolation("AI service returned an empty message", template=template.name)
        if not isinstance(content, str):
            raise OutputSchemaViolation(
                f"AI service returned {type(content).__name__} content, expected text", template=template.name
            )
        return content

    def _parse_output(self, template: PromptTemplate, content: str) -> BaseModel:
        try:
            parsed = json.loads(clean_json(content))
        except json.JSONDecodeError as e:
            logger.warning("%s returned invalid JSON (%d chars)", template.name, len(content))
            raise OutputSchemaViolation(f"Response is not valid JSON: {e}", template=template.name) from e
        try:
            return template.output_model.model_validate(parsed)
        except PydanticValidationError as e:
            missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            logger.warning("%s response failed validation on %s", template.name, missing)
            raise OutputSchemaViolation(
                f"Response does not match {template.output_model.__name__}: {', '.join(missing)}",
                template=template.name,
            ) from e


def get_ai_service(settings: Optional[Settings] = None) -> AIService:
    """Get an AI service bound to the given settings, or the process defaults."""
    if settings is None:
        settings = get_settings()
    return AIService(settings)

# stitchquote/services/assessor.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Sequence

import jsonschema
import openai

from stitchquote.domain.assessment import CLASSIFICATION_REPLY_SCHEMA, CLASSIFICATION_SCHEMA
from stitchquote.domain.errors import UpstreamUnavailable
from stitchquote.infra.retry import retry_on
from stitchquote.observability.metrics import assessment_counter

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert auto/marine upholstery trimmer. Analyze the photos and "
    "return ONLY valid JSON matching the provided schema.\n\n"
    "Rules:\n"
    "- Be conservative and practical.\n"
    "- If uncertain, choose 'unknown' and explain what you'd need to confirm.\n"
    "- For recommended_repair_explained: explain the process step-by-step in plain "
    "English (remove cover, inspect foam, pattern, cut/sew, install, finish).\n"
    "- For material_suggestions: recommend 2-4 good options and why (durability, "
    "UV/mildew for marine, thread choice, match/texture)."
)

# Transport-level failures worth another attempt; 4xx answers are not.
RETRYABLE_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def is_retryable(exc: Exception) -> bool:
    return isinstance(exc, RETRYABLE_ERRORS)


def parse_classification(raw_text: str) -> Dict[str, Any]:
    """Model reply text -> dict. Anything unusable is UpstreamUnavailable."""
    try:
        data = json.loads(raw_text or "")
    except ValueError as e:
        raise UpstreamUnavailable("AI output parsing failed.", detail=(raw_text or "")[:500]) from e
    try:
        jsonschema.validate(data, CLASSIFICATION_REPLY_SCHEMA)
    except jsonschema.ValidationError as e:
        raise UpstreamUnavailable("AI output parsing failed.", detail=e.message) from e
    return data


class OpenAIAssessor:
    """Photo classification through the OpenAI Responses API (structured output)."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        attempts: int = 2,
        client: Optional[openai.OpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.attempts = attempts
        self._client = client

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            if not self.api_key:
                raise UpstreamUnavailable("AI assessment is not configured.")
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def _request(self, category: str, notes: str, photo_urls: Sequence[str]) -> Dict[str, Any]:
        return {
            "model": self.model,
            "store": False,
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": SYSTEM_PROMPT}],
                },
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "input_text",
                            "text": f"Category selected: {category}\nCustomer notes: {notes or '(none)'}",
                        },
                        *[
                            {"type": "input_image", "image_url": url, "detail": "low"}
                            for url in photo_urls
                        ],
                    ],
                },
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "upholstery_assessment",
                    "schema": CLASSIFICATION_SCHEMA,
                }
            },
        }

    def classify(self, *, category: str, notes: str, photo_urls: Sequence[str]) -> Dict[str, Any]:
        """Raw (unvalidated-enum) classification dict for the photos."""
        request = self._request(category, notes, photo_urls)
        client = self.client

        try:
            resp = retry_on(
                lambda: client.responses.create(**request),
                attempts=self.attempts,
                is_retryable=is_retryable,
            )
        except openai.OpenAIError as e:
            logger.error("assessment call failed: %s", e)
            assessment_counter.labels(result="error").inc()
            raise UpstreamUnavailable("AI assessment failed.", detail=str(e)) from e

        try:
            data = parse_classification(getattr(resp, "output_text", "") or "")
        except UpstreamUnavailable:
            assessment_counter.labels(result="error").inc()
            raise

        assessment_counter.labels(result="success").inc()
        return data

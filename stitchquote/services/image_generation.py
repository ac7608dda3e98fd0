# stitchquote/services/image_generation.py
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import openai

from stitchquote.domain.assessment import ENUM_DOMAINS
from stitchquote.domain.errors import UpstreamUnavailable
from stitchquote.infra.retry import retry_on
from stitchquote.services.assessor import is_retryable

logger = logging.getLogger(__name__)

MAX_REFERENCE_IMAGES = 3

RENDER_PROMPT = """
Create a single photorealistic "after" concept render of an upholstery repair.

Rules:
- Keep the item/scene consistent with the provided photos (same subject, camera angle, composition).
- Improve/restore the upholstery: clean lines, tighter fit, corrected damage, professional finish.
- Do NOT add logos or text.
- Do NOT change the background significantly; just make it look clean and realistic.
- Make it look like a real finished upholstery job from a professional shop.

Category: {category}
Material: {material}

Return ONE image.
""".strip()


def clean_category(value: Any) -> str:
    v = str(value or "auto").strip().lower()
    return v if v in ("marine", "motorcycle") else "auto"


def build_render_prompt(category: Any, material_guess: Any = None) -> str:
    # stored assessments may carry lists/numbers here; only a known value is used
    material = material_guess.strip().lower() if isinstance(material_guess, str) else ""
    if material not in ENUM_DOMAINS["material_guess"] or material == "unknown":
        material = "match the existing material"
    return RENDER_PROMPT.format(category=clean_category(category), material=material)


def extract_image_b64(response: Any) -> Optional[str]:
    """First non-empty image_generation_call result in a Responses API reply."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "image_generation_call":
            continue
        result = getattr(item, "result", None)
        if isinstance(result, str) and result:
            return result
    return None


class OpenAIImageGenerator:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-5",
        size: str = "1024x1024",
        quality: str = "medium",
        attempts: int = 2,
        client: Optional[openai.OpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.size = size
        self.quality = quality
        self.attempts = attempts
        self._client = client

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            if not self.api_key:
                raise UpstreamUnavailable("Image generation is not configured.")
            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def generate(self, prompt: str, reference_urls: Sequence[str]) -> Optional[str]:
        """
        Base64 PNG for the prompt, or None when the service answered without
        an image. Transport failures raise UpstreamUnavailable.
        """
        content = [{"type": "input_text", "text": prompt}]
        content += [
            {"type": "input_image", "image_url": url, "detail": "auto"}
            for url in list(reference_urls)[:MAX_REFERENCE_IMAGES]
        ]
        client = self.client

        try:
            resp = retry_on(
                lambda: client.responses.create(
                    model=self.model,
                    input=[{"role": "user", "content": content}],
                    tools=[
                        {
                            "type": "image_generation",
                            "quality": self.quality,
                            "size": self.size,
                            "background": "opaque",
                        }
                    ],
                    tool_choice={"type": "image_generation"},
                ),
                attempts=self.attempts,
                is_retryable=is_retryable,
            )
        except openai.OpenAIError as e:
            logger.error("image generation call failed: %s", e)
            raise UpstreamUnavailable("Image generation failed.", detail=str(e)) from e

        return extract_image_b64(resp)

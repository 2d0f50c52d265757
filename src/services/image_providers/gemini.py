"""Gemini (Google) image provider - native image generation and editing."""

import base64
import logging
from typing import Optional

from models.image_generation import (
    EditInput,
    GenerateInput,
    GeneratedImage,
    ProviderCapabilities,
    ProviderResult,
)
from services.image_providers.base import DEFAULT_SIZE, ImageProvider, closest_aspect_ratio
from services.image_providers.errors import ProviderError

logger = logging.getLogger(__name__)

# Gemini takes ratios, not pixels
ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4", "3:2", "2:3", "21:9", "5:4", "4:5")


class GeminiImageProvider(ImageProvider):
    """Gemini ``generateContent`` with image output.

    API Documentation: https://ai.google.dev/gemini-api/docs/image-generation

    Edits send the source image as an ``inlineData`` part next to the instruction,
    which makes Gemini the default for conversational edits.
    """

    name = "GEMINI"
    env_var = "GEMINI_API_KEY"

    API_BASE = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-2.5-flash-image"

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=True,
            supported_models=(self.DEFAULT_MODEL,),
        )

    def _headers(self) -> dict:
        return {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        aspect_ratio = closest_aspect_ratio(
            request.width or DEFAULT_SIZE, request.height or DEFAULT_SIZE, ASPECT_RATIOS
        )
        return await self._generate_content(
            request.model or self.DEFAULT_MODEL,
            [{"text": request.prompt}],
            aspect_ratio,
        )

    async def _edit(self, request: EditInput) -> ProviderResult:
        buffer, mime_type = self.get_image_buffer(request.source_image)
        parts = [
            {"text": request.prompt},
            {
                "inlineData": {
                    "mimeType": mime_type,
                    "data": base64.b64encode(buffer).decode("ascii"),
                }
            },
        ]
        aspect_ratio = None
        if request.width and request.height:
            aspect_ratio = closest_aspect_ratio(request.width, request.height, ASPECT_RATIOS)
        return await self._generate_content(
            request.model or self.DEFAULT_MODEL, parts, aspect_ratio
        )

    async def _generate_content(
        self, model: str, parts: list[dict], aspect_ratio: Optional[str]
    ) -> ProviderResult:
        generation_config: dict = {"responseModalities": ["IMAGE"]}
        if aspect_ratio:
            generation_config["imageConfig"] = {"aspectRatio": aspect_ratio}

        payload = {"contents": [{"parts": parts}], "generationConfig": generation_config}

        logger.info(f"Generating image with Gemini {model} (aspect={aspect_ratio or 'source'})")
        response = await self._request(
            "POST",
            f"{self.API_BASE}/models/{model}:generateContent",
            headers=self._headers(),
            json=payload,
        )
        result_data = response.json()

        block_reason = (result_data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ProviderError(f"Gemini blocked the prompt: {block_reason}", self.name)

        images = []
        candidates = result_data.get("candidates") or []
        if candidates:
            for part in (candidates[0].get("content") or {}).get("parts") or []:
                inline_data = part.get("inlineData") or {}
                if inline_data.get("data"):
                    images.append(
                        GeneratedImage(
                            buffer=base64.b64decode(inline_data["data"]),
                            mime_type=inline_data.get("mimeType", "image/png"),
                        )
                    )

        return self._result(images, model)

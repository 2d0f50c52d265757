"""Fal.ai image provider (fast FLUX schnell drafts)."""

import logging

from models.image_generation import (
    EditInput,
    GenerateInput,
    ProviderCapabilities,
    ProviderResult,
)
from services.image_providers.base import DEFAULT_SIZE, ImageProvider
from services.image_providers.errors import ProviderError

logger = logging.getLogger(__name__)


class FalImageProvider(ImageProvider):
    """Fal.ai synchronous endpoints (``https://fal.run/<model>``).

    API Documentation: https://docs.fal.ai/model-endpoints

    Images come back as URLs (or data URIs in sync mode), either as plain strings or
    ``{"url": ..., "content_type": ...}`` objects.
    """

    name = "FAL"
    env_var = "FAL_KEY"

    API_BASE = "https://fal.run"
    DEFAULT_MODEL = "fal-ai/flux/schnell"
    EDIT_MODEL = "fal-ai/flux/dev/image-to-image"
    DEFAULT_STRENGTH = 0.85

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=True,
            max_width=2048,
            max_height=2048,
            supported_models=(self.DEFAULT_MODEL, "fal-ai/flux/dev", self.EDIT_MODEL),
        )

    def _headers(self) -> dict:
        return {"Authorization": f"Key {self.api_key}", "Content-Type": "application/json"}

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        model = request.model or self.DEFAULT_MODEL
        payload = {
            "prompt": request.prompt,
            "image_size": {
                "width": request.width or DEFAULT_SIZE,
                "height": request.height or DEFAULT_SIZE,
            },
            "num_images": request.num_images,
            "enable_safety_checker": True,
        }
        if request.seed is not None:
            payload["seed"] = request.seed

        return await self._call(model, payload)

    async def _edit(self, request: EditInput) -> ProviderResult:
        model = request.model or self.EDIT_MODEL
        buffer, mime_type = self.get_image_buffer(request.source_image)
        payload = {
            "prompt": request.prompt,
            "image_url": self.buffer_to_data_url(buffer, mime_type),
            "strength": (
                request.strength if request.strength is not None else self.DEFAULT_STRENGTH
            ),
            "enable_safety_checker": True,
        }
        if request.seed is not None:
            payload["seed"] = request.seed

        return await self._call(model, payload)

    async def _call(self, model: str, payload: dict) -> ProviderResult:
        response = await self._request(
            "POST", f"{self.API_BASE}/{model}", headers=self._headers(), json=payload
        )
        result_data = response.json()

        if result_data.get("status") == "FAILED" or result_data.get("error"):
            raise ProviderError(
                f"Fal generation failed: {result_data.get('error', 'Unknown error')}",
                self.name,
            )

        nsfw_flags = result_data.get("has_nsfw_concepts") or []
        images = []
        for index, item in enumerate(result_data.get("images") or []):
            if index < len(nsfw_flags) and nsfw_flags[index]:
                logger.warning(f"Fal flagged image {index} as NSFW, skipping")
                continue
            url = item.get("url") if isinstance(item, dict) else item
            if url:
                images.append(await self._download_image(url))

        timings = result_data.get("timings") or {}
        if timings.get("inference") is not None:
            logger.debug(f"Fal inference took {timings['inference']:.2f}s")
        return self._result(images, model)

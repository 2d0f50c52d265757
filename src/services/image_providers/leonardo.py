"""Leonardo.Ai image provider (job submission + status polling)."""

import logging
from typing import Optional

from models.image_generation import GenerateInput, ProviderCapabilities, ProviderResult
from services.image_providers.base import DEFAULT_SIZE, ImageProvider
from services.image_providers.errors import ProviderError

logger = logging.getLogger(__name__)

MIN_DIMENSION = 32
MAX_DIMENSION = 1536


def leonardo_dimension(value: int) -> int:
    """Leonardo requires multiples of 8 between 32 and 1536."""
    snapped = int(round(value / 8)) * 8
    return max(MIN_DIMENSION, min(MAX_DIMENSION, snapped))


class LeonardoImageProvider(ImageProvider):
    """Leonardo.Ai REST API.

    API Documentation: https://docs.leonardo.ai/reference

    Generation is asynchronous: ``POST /generations`` returns a generation id, then
    ``GET /generations/{id}`` reports ``PENDING``/``COMPLETE``/``FAILED``.
    Good at consistent characters across a series of images.
    """

    name = "LEONARDO"
    env_var = "LEONARDO_API_KEY"

    API_BASE = "https://cloud.leonardo.ai/api/rest/v1"
    DEFAULT_MODEL = "6b645e3a-d64f-4341-a6d8-7a3690fbf042"  # Leonardo Phoenix

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=False,
            max_width=MAX_DIMENSION,
            max_height=MAX_DIMENSION,
            supported_models=(self.DEFAULT_MODEL,),
        )

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        model = request.model or self.DEFAULT_MODEL
        payload = {
            "prompt": request.prompt,
            "modelId": model,
            "width": leonardo_dimension(request.width or DEFAULT_SIZE),
            "height": leonardo_dimension(request.height or DEFAULT_SIZE),
            "num_images": request.num_images,
        }
        if request.seed is not None:
            payload["seed"] = request.seed
        if request.negative_prompt:
            payload["negative_prompt"] = request.negative_prompt

        response = await self._request(
            "POST", f"{self.API_BASE}/generations", headers=self._headers(), json=payload
        )
        job = response.json().get("sdGenerationJob") or {}
        generation_id = job.get("generationId")
        if not generation_id:
            raise ProviderError("Leonardo did not return a generation ID", self.name)

        logger.info(f"Leonardo generation submitted: {generation_id}")

        async def check() -> Optional[list[str]]:
            status_response = await self._request(
                "GET",
                f"{self.API_BASE}/generations/{generation_id}",
                headers=self._headers(),
            )
            generation = status_response.json().get("generations_by_pk") or {}
            status = generation.get("status")

            if status == "COMPLETE":
                return [
                    img["url"]
                    for img in generation.get("generated_images") or []
                    if img.get("url")
                ]
            if status == "FAILED":
                raise ProviderError(f"Leonardo generation {generation_id} failed", self.name)
            return None

        urls = await self._poll(check, f"Leonardo generation {generation_id}")
        images = [await self._download_image(url) for url in urls]
        return self._result(images, model)

"""Ideogram image provider (strong text rendering and logos)."""

import logging

from models.image_generation import GenerateInput, ProviderCapabilities, ProviderResult
from services.image_providers.base import DEFAULT_SIZE, ImageProvider, closest_aspect_ratio
from services.image_providers.errors import ProviderError

logger = logging.getLogger(__name__)

ASPECT_RATIOS = (
    "1:1", "16:9", "9:16", "16:10", "10:16", "3:2", "2:3",
    "4:3", "3:4", "5:4", "4:5", "2:1", "1:2", "3:1", "1:3",
)
RENDERING_SPEEDS = ("TURBO", "DEFAULT", "QUALITY")


class IdeogramImageProvider(ImageProvider):
    """Ideogram 3.0 API.

    API Documentation: https://developer.ideogram.ai/api-reference

    The model name selects the rendering speed (TURBO, DEFAULT, QUALITY). Responses
    carry image URLs plus an ``is_image_safe`` flag; unsafe images are dropped.
    """

    name = "IDEOGRAM"
    env_var = "IDEOGRAM_API_KEY"

    API_URL = "https://api.ideogram.ai/v1/ideogram-v3/generate"
    DEFAULT_MODEL = "DEFAULT"

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=False,
            supported_models=RENDERING_SPEEDS,
        )

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        rendering_speed = (request.model or self.DEFAULT_MODEL).upper()
        if rendering_speed not in RENDERING_SPEEDS:
            raise ProviderError(
                f"Unknown Ideogram model {request.model}. Use one of: {list(RENDERING_SPEEDS)}",
                self.name,
            )

        aspect_ratio = closest_aspect_ratio(
            request.width or DEFAULT_SIZE, request.height or DEFAULT_SIZE, ASPECT_RATIOS
        )
        fields = {
            "prompt": request.prompt,
            "rendering_speed": rendering_speed,
            "aspect_ratio": aspect_ratio.replace(":", "x"),
            "num_images": str(request.num_images),
        }
        if request.seed is not None:
            fields["seed"] = str(request.seed)
        if request.negative_prompt:
            fields["negative_prompt"] = request.negative_prompt

        # Multipart form without file parts
        response = await self._request(
            "POST",
            self.API_URL,
            headers={"Api-Key": self.api_key},
            files=[(key, (None, value)) for key, value in fields.items()],
        )

        items = response.json().get("data") or []
        safe_urls = [
            item["url"] for item in items if item.get("url") and item.get("is_image_safe", True)
        ]
        if items and not safe_urls:
            raise ProviderError("All images were flagged as unsafe", self.name)

        logger.debug(f"Ideogram returned {len(safe_urls)}/{len(items)} safe image(s)")
        images = [await self._download_image(url) for url in safe_urls]
        return self._result(images, rendering_speed)

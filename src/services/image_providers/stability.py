"""Stability AI image provider (Stable Image Core / Ultra / SD3.5)."""

import logging

import httpx

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

ASPECT_RATIOS = ("1:1", "16:9", "9:16", "21:9", "9:21", "2:3", "3:2", "4:5", "5:4")

# Model name -> endpoint under /stable-image/generate
MODEL_ENDPOINTS = {
    "core": "core",
    "ultra": "ultra",
    "sd3.5-large": "sd3",
    "sd3.5-large-turbo": "sd3",
    "sd3.5-medium": "sd3",
}


class StabilityImageProvider(ImageProvider):
    """Stability AI REST v2beta.

    API Documentation: https://platform.stability.ai/docs/api-reference

    Requests are multipart forms; with ``Accept: image/*`` the response body is the
    image itself and the ``finish-reason`` header reports content filtering.
    """

    name = "STABILITY"
    env_var = "STABILITY_API_KEY"

    API_BASE = "https://api.stability.ai/v2beta/stable-image"
    DEFAULT_MODEL = "core"
    EDIT_MODEL = "sd3.5-large"
    DEFAULT_STRENGTH = 0.7

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=True,
            supported_models=tuple(MODEL_ENDPOINTS),
        )

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "image/*"}

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        model = request.model or self.DEFAULT_MODEL
        endpoint = MODEL_ENDPOINTS.get(model)
        if endpoint is None:
            raise ProviderError(
                f"Unknown Stability model {model}. Use one of: {list(MODEL_ENDPOINTS)}",
                self.name,
            )

        data = {
            "prompt": request.prompt,
            "output_format": "png",
            "aspect_ratio": closest_aspect_ratio(
                request.width or DEFAULT_SIZE, request.height or DEFAULT_SIZE, ASPECT_RATIOS
            ),
        }
        if endpoint == "sd3":
            data["model"] = model
        if request.seed is not None:
            data["seed"] = str(request.seed)
        if request.negative_prompt:
            data["negative_prompt"] = request.negative_prompt

        # The API only accepts multipart bodies; an empty file part forces one
        response = await self._request(
            "POST",
            f"{self.API_BASE}/generate/{endpoint}",
            headers=self._headers(),
            data=data,
            files={"none": ""},
        )
        return self._result([self._image_from_response(response)], model)

    async def _edit(self, request: EditInput) -> ProviderResult:
        model = request.model or self.EDIT_MODEL
        buffer, mime_type = self.get_image_buffer(request.source_image)

        data = {
            "prompt": request.prompt,
            "mode": "image-to-image",
            "model": model,
            "strength": str(
                request.strength if request.strength is not None else self.DEFAULT_STRENGTH
            ),
            "output_format": "png",
        }
        if request.seed is not None:
            data["seed"] = str(request.seed)

        response = await self._request(
            "POST",
            f"{self.API_BASE}/generate/sd3",
            headers=self._headers(),
            data=data,
            files={"image": ("image", buffer, mime_type)},
        )
        return self._result([self._image_from_response(response)], model)

    def _image_from_response(self, response: httpx.Response) -> GeneratedImage:
        finish_reason = response.headers.get("finish-reason", "SUCCESS")
        if finish_reason == "CONTENT_FILTERED":
            raise ProviderError("Generation blocked by content filter", self.name)
        if not response.content:
            raise ProviderError("Empty image returned", self.name)

        mime_type = response.headers.get("content-type", "image/png").split(";")[0]
        logger.debug(f"Stability returned {len(response.content)} bytes ({mime_type})")
        return GeneratedImage(buffer=response.content, mime_type=mime_type)

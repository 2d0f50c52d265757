"""OpenAI image provider (gpt-image-1, DALL-E 3, DALL-E 2)."""

import base64
import logging

from models.image_generation import (
    EditInput,
    GenerateInput,
    GeneratedImage,
    ProviderCapabilities,
    ProviderResult,
)
from services.image_providers.base import DEFAULT_SIZE, ImageProvider

logger = logging.getLogger(__name__)

# Sizes each model accepts, as (square, landscape, portrait)
MODEL_SIZES = {
    "gpt-image-1": ("1024x1024", "1536x1024", "1024x1536"),
    "dall-e-3": ("1024x1024", "1792x1024", "1024x1792"),
}
DALL_E_2_SIZES = (256, 512, 1024)


def openai_size(model: str, width: int, height: int) -> str:
    """Snap requested dimensions to a size the model supports."""
    if model == "dall-e-2":
        target = max(width, height)
        side = next((s for s in DALL_E_2_SIZES if s >= target), DALL_E_2_SIZES[-1])
        return f"{side}x{side}"

    square, landscape, portrait = MODEL_SIZES.get(model, MODEL_SIZES["gpt-image-1"])
    ratio = width / height
    if ratio > 1.15:
        return landscape
    if ratio < 0.87:
        return portrait
    return square


class OpenAIImageProvider(ImageProvider):
    """OpenAI Images API.

    API Documentation: https://platform.openai.com/docs/api-reference/images

    gpt-image-1 always answers with base64 (``b64_json``); the DALL-E models are asked
    for base64 explicitly so no second download is needed.
    """

    name = "OPENAI"
    env_var = "OPENAI_API_KEY"

    API_BASE = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-image-1"

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=True,
            max_width=1792,
            max_height=1792,
            supported_models=("gpt-image-1", "dall-e-3", "dall-e-2"),
        )

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        model = request.model or self.DEFAULT_MODEL
        payload = {
            "model": model,
            "prompt": request.prompt,
            "n": request.num_images,
            "size": openai_size(
                model, request.width or DEFAULT_SIZE, request.height or DEFAULT_SIZE
            ),
        }
        if model.startswith("dall-e"):
            payload["response_format"] = "b64_json"

        logger.debug(f"OpenAI {model} size {payload['size']}")

        response = await self._request(
            "POST",
            f"{self.API_BASE}/images/generations",
            headers={**self._headers(), "Content-Type": "application/json"},
            json=payload,
        )
        images = await self._parse_images(response.json())
        return self._result(images, model)

    async def _edit(self, request: EditInput) -> ProviderResult:
        model = request.model or self.DEFAULT_MODEL
        buffer, mime_type = self.get_image_buffer(request.source_image)
        extension = mime_type.split("/")[-1]

        files = [("image", (f"image.{extension}", buffer, mime_type))]
        if request.mask_image:
            mask_buffer, mask_mime = self.get_image_buffer(request.mask_image)
            files.append(("mask", ("mask.png", mask_buffer, mask_mime)))

        data = {"model": model, "prompt": request.prompt, "n": "1"}
        if request.width and request.height:
            data["size"] = openai_size(model, request.width, request.height)

        response = await self._request(
            "POST",
            f"{self.API_BASE}/images/edits",
            headers=self._headers(),
            data=data,
            files=files,
        )
        images = await self._parse_images(response.json())
        return self._result(images, model)

    async def _parse_images(self, result_data: dict) -> list[GeneratedImage]:
        images = []
        for item in result_data.get("data", []):
            if item.get("b64_json"):
                images.append(
                    GeneratedImage(
                        buffer=base64.b64decode(item["b64_json"]), mime_type="image/png"
                    )
                )
            elif item.get("url"):
                images.append(await self._download_image(item["url"]))
        return images

"""Clipdrop image provider (text-to-image plus post-processing tools)."""

import logging
import re
from typing import Optional

import httpx

from models.image_generation import (
    EditInput,
    GenerateInput,
    GeneratedImage,
    ProviderCapabilities,
    ProviderResult,
)
from services.image_providers.base import ImageProvider
from services.image_providers.errors import ProviderError

logger = logging.getLogger(__name__)

MAX_UPSCALE_DIMENSION = 4096

REMOVE_BACKGROUND_PATTERN = re.compile(
    r"\b(remove|delete|erase|strip|cut out)\b.*\bbackground\b|\btransparent\b|\bbackground removal\b"
)
UPSCALE_PATTERN = re.compile(r"\b(upscale|upscaling|enlarge|super[- ]?resolution|higher resolution)\b")


class ClipdropImageProvider(ImageProvider):
    """Clipdrop APIs.

    API Documentation: https://clipdrop.co/apis/docs

    Every endpoint takes a multipart form and answers with the image bytes. The edit
    operation picks a tool from the prompt: background removal, upscaling, cleanup
    (when a mask is given) or background replacement described by the prompt.
    """

    name = "CLIPDROP"
    env_var = "CLIPDROP_API_KEY"

    API_BASE = "https://clipdrop-api.co"

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=True,
            max_width=MAX_UPSCALE_DIMENSION,
            max_height=MAX_UPSCALE_DIMENSION,
            supported_models=(
                "text-to-image",
                "remove-background",
                "image-upscaling",
                "cleanup",
                "replace-background",
            ),
        )

    def _headers(self) -> dict:
        return {"x-api-key": self.api_key}

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        # Fixed 1024x1024 output; size hints are not accepted
        response = await self._request(
            "POST",
            f"{self.API_BASE}/text-to-image/v1",
            headers=self._headers(),
            files={"prompt": (None, request.prompt)},
        )
        return self._result([self._image_from_response(response)], "text-to-image")

    async def _edit(self, request: EditInput) -> ProviderResult:
        tool = request.model or self.select_tool(request.prompt, request.mask_image)
        buffer, mime_type = self.get_image_buffer(request.source_image)
        files: dict = {"image_file": ("image", buffer, mime_type)}

        if tool == "image-upscaling":
            width, height = self._upscale_target(request)
            files["target_width"] = (None, str(width))
            files["target_height"] = (None, str(height))
        elif tool == "cleanup":
            if not request.mask_image:
                raise ProviderError("Cleanup requires a mask image", self.name)
            mask_buffer, mask_mime = self.get_image_buffer(request.mask_image)
            files["mask_file"] = ("mask", mask_buffer, mask_mime)
        elif tool == "replace-background":
            files["prompt"] = (None, request.prompt)
        elif tool != "remove-background":
            raise ProviderError(f"Unknown Clipdrop tool {tool}", self.name)

        logger.info(f"Clipdrop edit using {tool}")
        response = await self._request(
            "POST", f"{self.API_BASE}/{tool}/v1", headers=self._headers(), files=files
        )
        return self._result([self._image_from_response(response)], tool)

    @staticmethod
    def select_tool(prompt: str, mask_image: Optional[str] = None) -> str:
        """Pick the Clipdrop tool that matches an edit prompt."""
        text = prompt.lower()
        if REMOVE_BACKGROUND_PATTERN.search(text):
            return "remove-background"
        if UPSCALE_PATTERN.search(text):
            return "image-upscaling"
        if mask_image:
            return "cleanup"
        return "replace-background"

    def _upscale_target(self, request: EditInput) -> tuple[int, int]:
        """Requested size, or double the source capped at 4096 keeping the ratio."""
        if request.width and request.height:
            return request.width, request.height

        width, height = self.detect_image_dimensions(request.source_image)
        scale = min(2.0, MAX_UPSCALE_DIMENSION / max(width, height))
        return int(width * scale), int(height * scale)

    def _image_from_response(self, response: httpx.Response) -> GeneratedImage:
        if not response.content:
            raise ProviderError("Empty image returned", self.name)
        mime_type = response.headers.get("content-type", "image/png").split(";")[0]
        remaining = response.headers.get("x-remaining-credits")
        if remaining is not None:
            logger.debug(f"Clipdrop credits remaining: {remaining}")
        return GeneratedImage(buffer=response.content, mime_type=mime_type)

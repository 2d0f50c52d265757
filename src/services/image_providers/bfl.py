"""Black Forest Labs (FLUX) image provider."""

import base64
import logging
from typing import Optional

from models.image_generation import (
    EditInput,
    GenerateInput,
    ProviderCapabilities,
    ProviderResult,
)
from services.image_providers.base import DEFAULT_SIZE, ImageProvider, closest_aspect_ratio
from services.image_providers.errors import ProviderError

logger = logging.getLogger(__name__)

MIN_DIMENSION = 256
MAX_DIMENSION = 1440

# Terminal failure statuses reported by get_result
FAILED_STATUSES = ("Failed", "Error", "Request Moderated", "Content Moderated", "Task not found")

KONTEXT_ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4", "3:2", "2:3", "21:9", "9:21")


def bfl_dimension(value: int) -> int:
    """FLUX needs multiples of 32 between 256 and 1440."""
    snapped = int(round(value / 32)) * 32
    return max(MIN_DIMENSION, min(MAX_DIMENSION, snapped))


class BFLImageProvider(ImageProvider):
    """BFL API for FLUX models.

    API Documentation: https://docs.bfl.ai

    Submitting a task returns an id and a ``polling_url``; the result endpoint reports
    ``Pending`` until the task is ``Ready`` with ``result.sample`` holding a signed URL.
    Editing uses FLUX Kontext with the source image as base64.
    """

    name = "BFL"
    env_var = "BFL_API_KEY"

    API_BASE = "https://api.bfl.ai/v1"
    DEFAULT_MODEL = "flux-pro-1.1"
    EDIT_MODEL = "flux-kontext-pro"

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=True,
            max_width=MAX_DIMENSION,
            max_height=MAX_DIMENSION,
            supported_models=("flux-pro-1.1", "flux-pro-1.1-ultra", "flux-dev", "flux-kontext-pro"),
        )

    def _headers(self) -> dict:
        return {
            "x-key": self.api_key,
            "accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        model = request.model or self.DEFAULT_MODEL
        payload = {
            "prompt": request.prompt,
            "width": bfl_dimension(request.width or DEFAULT_SIZE),
            "height": bfl_dimension(request.height or DEFAULT_SIZE),
            "output_format": "png",
        }
        if request.seed is not None:
            payload["seed"] = request.seed

        sample_url = await self._submit_and_wait(model, payload)
        return self._result([await self._download_image(sample_url)], model)

    async def _edit(self, request: EditInput) -> ProviderResult:
        model = request.model or self.EDIT_MODEL
        buffer, _ = self.get_image_buffer(request.source_image)

        payload = {
            "prompt": request.prompt,
            "input_image": base64.b64encode(buffer).decode("ascii"),
            "output_format": "png",
        }
        if request.width and request.height:
            payload["aspect_ratio"] = closest_aspect_ratio(
                request.width, request.height, KONTEXT_ASPECT_RATIOS
            )
        if request.seed is not None:
            payload["seed"] = request.seed

        sample_url = await self._submit_and_wait(model, payload)
        return self._result([await self._download_image(sample_url)], model)

    async def _submit_and_wait(self, model: str, payload: dict) -> str:
        """Submit a task and poll until it is Ready.

        Returns:
            URL of the generated sample
        """
        response = await self._request(
            "POST", f"{self.API_BASE}/{model}", headers=self._headers(), json=payload
        )
        submission = response.json()
        task_id = submission.get("id")
        if not task_id:
            raise ProviderError("BFL did not return a task ID", self.name)

        polling_url = submission.get("polling_url") or f"{self.API_BASE}/get_result?id={task_id}"
        logger.info(f"BFL task submitted: {task_id} ({model})")

        async def check() -> Optional[str]:
            status_response = await self._request(
                "GET", polling_url, headers=self._headers()
            )
            result = status_response.json()
            status = result.get("status")

            if status == "Ready":
                sample = (result.get("result") or {}).get("sample")
                if not sample:
                    raise ProviderError("BFL task finished without a sample", self.name)
                return sample
            if status in FAILED_STATUSES:
                detail = result.get("error")
                if isinstance(detail, dict):
                    detail = detail.get("message")
                raise ProviderError(
                    f"BFL task {task_id} {status}" + (f": {detail}" if detail else ""),
                    self.name,
                )
            return None

        return await self._poll(check, f"BFL task {task_id}")

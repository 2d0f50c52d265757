"""Replicate image provider (hosted community models)."""

import logging
from typing import Optional

from models.image_generation import GenerateInput, ProviderCapabilities, ProviderResult
from services.image_providers.base import DEFAULT_SIZE, ImageProvider, closest_aspect_ratio
from services.image_providers.errors import ProviderError

logger = logging.getLogger(__name__)

ASPECT_RATIOS = ("1:1", "16:9", "21:9", "3:2", "2:3", "4:5", "5:4", "3:4", "4:3", "9:16", "9:21")


class ReplicateImageProvider(ImageProvider):
    """Replicate predictions API.

    API Documentation: https://replicate.com/docs/reference/http

    ``owner/name`` models use the official-model endpoint; ``owner/name:version``
    pins a version through ``/predictions``. With ``Prefer: wait`` short predictions
    finish inline, otherwise ``urls.get`` is polled until ``succeeded``.
    """

    name = "REPLICATE"
    env_var = "REPLICATE_API_TOKEN"

    API_BASE = "https://api.replicate.com/v1"
    DEFAULT_MODEL = "black-forest-labs/flux-schnell"

    def get_capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            supports_generate=True,
            supports_edit=False,
            supported_models=(self.DEFAULT_MODEL, "black-forest-labs/flux-dev"),
        )

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        model = request.model or self.DEFAULT_MODEL
        model_input = {
            "prompt": request.prompt,
            "aspect_ratio": closest_aspect_ratio(
                request.width or DEFAULT_SIZE, request.height or DEFAULT_SIZE, ASPECT_RATIOS
            ),
            "num_outputs": request.num_images,
            "output_format": "png",
        }
        if request.seed is not None:
            model_input["seed"] = request.seed

        if ":" in model:
            _, version = model.split(":", 1)
            url = f"{self.API_BASE}/predictions"
            payload = {"version": version, "input": model_input}
        else:
            url = f"{self.API_BASE}/models/{model}/predictions"
            payload = {"input": model_input}

        response = await self._request("POST", url, headers=self._headers(), json=payload)
        prediction = response.json()
        prediction_id = prediction.get("id", "unknown")
        logger.info(f"Replicate prediction {prediction_id}: {prediction.get('status')}")

        def finished(data: dict) -> Optional[list[str]]:
            status = data.get("status")
            if status == "succeeded":
                output = data.get("output") or []
                return [output] if isinstance(output, str) else list(output)
            if status in ("failed", "canceled"):
                raise ProviderError(
                    f"Replicate prediction {prediction_id} {status}: "
                    f"{data.get('error') or 'no details'}",
                    self.name,
                )
            return None

        urls = finished(prediction)
        if urls is None:
            poll_url = (prediction.get("urls") or {}).get("get") or (
                f"{self.API_BASE}/predictions/{prediction_id}"
            )

            async def check() -> Optional[list[str]]:
                status_response = await self._request(
                    "GET", poll_url, headers=self._headers()
                )
                return finished(status_response.json())

            urls = await self._poll(check, f"Replicate prediction {prediction_id}")

        images = [await self._download_image(url) for url in urls if url]
        return self._result(images, model)

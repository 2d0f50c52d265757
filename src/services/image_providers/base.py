"""Base abstraction for image generation providers.

Holds everything the adapters share: credential checks, input validation, image
source decoding, rate limiting, response caching, retry with backoff and the HTTP
helpers. Adapters only translate a request into their service's API and back.
"""

import asyncio
import base64
import binascii
import io
import logging
import mimetypes
import os
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from math import gcd
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, TypeVar, Union
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from models.image_generation import (
    DATA_URL_PATTERN,
    EditInput,
    GenerateInput,
    GeneratedImage,
    ProviderCapabilities,
    ProviderResult,
)
from services.image_providers.errors import (
    InvalidInputError,
    NotConfiguredError,
    ProviderError,
    RateLimitError,
    UnsupportedOperationError,
    error_from_response,
    wrap_http_error,
)
from utils.cache import ResponseCache
from utils.config import is_test_mode
from utils.rate_limiter import RateLimiter, RateLimitExceeded
from utils.retry import DEFAULT_MAX_ATTEMPTS, retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_PROMPT_LENGTH = 4000
API_KEY_MIN_LENGTH = 10
DEFAULT_TIMEOUT = 30.0  # seconds
DEFAULT_SIZE = 1024

TEST_KEY_PREFIX = "test-"
PLACEHOLDER_KEYS = ("your-api-key", "xxx", "placeholder", "test", "demo")

EXTENSION_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

ImageRequest = Union[GenerateInput, EditInput]


def closest_aspect_ratio(width: int, height: int, supported: Sequence[str]) -> str:
    """Map pixel dimensions to the nearest "W:H" ratio a provider accepts.

    Exact matches win after GCD reduction; otherwise the closest ratio within 5%
    is used, falling back to 1:1.
    """
    divisor = gcd(width, height) or 1
    exact = f"{width // divisor}:{height // divisor}"
    if exact in supported:
        return exact

    actual_ratio = width / height
    best_match = None
    best_diff = float("inf")
    for ratio in supported:
        w, h = (int(part) for part in ratio.split(":"))
        diff = abs(actual_ratio - w / h)
        if diff < best_diff:
            best_diff = diff
            best_match = ratio

    if best_match and best_diff < 0.05:
        return best_match

    logger.warning(f"No matching aspect ratio for {width}x{height}. Defaulting to 1:1")
    return "1:1"


class ImageProvider(ABC):
    """Abstract base class for image generation providers (OpenAI, BFL, Fal, etc.).

    Subclasses set ``name``/``env_var``, declare their capabilities and override
    ``_generate`` and/or ``_edit``. The public ``generate``/``edit`` methods wrap those
    hooks with validation, caching, rate limiting and retries.
    """

    name: str = ""
    env_var: str = ""

    # Polling defaults for job-id style providers
    poll_interval: float = 2.0
    max_poll_wait: float = 120.0

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_TIMEOUT,
        test_mode: Optional[bool] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the provider.

        Args:
            api_key: API key, defaults to the provider's environment variable
            client: Shared HTTP client; one is created (and owned) if omitted
            cache: Shared response cache
            rate_limiter: Shared per-provider rate limiter
            timeout: Request timeout in seconds for an owned client
            test_mode: Accept ``test-`` keys; defaults to ``is_test_mode()``
            max_attempts: Attempts per call for retryable failures
            sleep: Awaitable sleep used for backoff and polling
        """
        self.api_key = api_key if api_key is not None else os.getenv(self.env_var, "")
        self.timeout = timeout
        self.test_mode = is_test_mode() if test_mode is None else test_mode
        self.max_attempts = max_attempts
        self.cache = cache if cache is not None else ResponseCache()
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    # =========================================================================
    # Capability surface
    # =========================================================================

    @abstractmethod
    def get_capabilities(self) -> ProviderCapabilities:
        """Describe supported operations, size limits and models."""

    def get_required_env_vars(self) -> list[str]:
        return [self.env_var]

    def is_configured(self) -> bool:
        """Check the API key is present, long enough and not a placeholder."""
        key = self.api_key
        if not key:
            return False

        if len(key) < API_KEY_MIN_LENGTH:
            logger.warning(f"API key for {self.name} is too short")
            return False

        if self.test_mode and key.startswith(TEST_KEY_PREFIX):
            return True

        lowered = key.lower()
        if any(placeholder in lowered for placeholder in PLACEHOLDER_KEYS):
            logger.warning(f"API key for {self.name} appears to be a placeholder")
            return False

        return True

    # =========================================================================
    # Public operations
    # =========================================================================

    async def generate(self, request: GenerateInput) -> ProviderResult:
        """Generate images from a text prompt."""
        return await self._run("generate", request, self._generate)

    async def edit(self, request: EditInput) -> ProviderResult:
        """Edit an existing image with a text prompt."""
        return await self._run("edit", request, self._edit)

    async def _generate(self, request: GenerateInput) -> ProviderResult:
        raise UnsupportedOperationError(
            f"{self.name} provider does not implement generate()", self.name
        )

    async def _edit(self, request: EditInput) -> ProviderResult:
        raise UnsupportedOperationError(
            f"{self.name} provider does not implement edit()", self.name
        )

    async def _run(
        self,
        operation: str,
        request: ImageRequest,
        handler: Callable[[ImageRequest], Awaitable[ProviderResult]],
    ) -> ProviderResult:
        if not self.get_capabilities().supports(operation):
            raise UnsupportedOperationError(
                f"{self.name} provider does not implement {operation}()", self.name
            )
        if not self.is_configured():
            raise NotConfiguredError(
                f"{self.env_var} not configured. Set it in your environment.", self.name
            )
        self.validate_prompt(request.prompt)
        self.validate_dimensions(request.width, request.height)

        cache_key = self.generate_cache_key(request, operation)
        cached = self.get_cached_result(cache_key)
        if cached is not None:
            return replace(cached, images=list(cached.images), cached=True)

        async def attempt() -> ProviderResult:
            self.check_rate_limit()
            try:
                result = await handler(request)
            except ProviderError:
                raise
            except httpx.HTTPError as e:
                raise wrap_http_error(e, self.name) from e
            except Exception as e:
                raise ProviderError(
                    f"{operation} failed: {e}", self.name, retryable=False
                ) from e
            if not result.images:
                raise ProviderError("No images returned", self.name, retryable=False)
            return result

        logger.info(f"{self.name} {operation} started (model={request.model or 'default'})")
        start_time = time.monotonic()
        result = await self.execute_with_retry(attempt)
        result.generation_time_ms = int((time.monotonic() - start_time) * 1000)

        logger.info(
            f"{self.name} {operation} returned {len(result.images)} image(s) "
            f"in {result.generation_time_ms}ms"
        )
        self.cache_result(cache_key, result)
        return result

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_prompt(self, prompt: str) -> None:
        if not prompt or not prompt.strip():
            raise InvalidInputError("Prompt cannot be empty", self.name)

        if len(prompt) > MAX_PROMPT_LENGTH:
            raise InvalidInputError(
                f"Prompt length {len(prompt)} exceeds maximum allowed length "
                f"of {MAX_PROMPT_LENGTH}",
                self.name,
            )

    def validate_dimensions(self, width: Optional[int], height: Optional[int]) -> None:
        """Reject non-positive sizes and sizes above the provider's limits."""
        capabilities = self.get_capabilities()
        for label, value, limit in (
            ("width", width, capabilities.max_width),
            ("height", height, capabilities.max_height),
        ):
            if value is None:
                continue
            if value <= 0:
                raise InvalidInputError(f"Image {label} must be positive", self.name)
            if limit is not None and value > limit:
                raise InvalidInputError(
                    f"Image {label} {value} exceeds {self.name} maximum of {limit}",
                    self.name,
                )

    def _check_image_size(self, size: int) -> None:
        if size > MAX_IMAGE_SIZE:
            raise InvalidInputError(
                f"Image size {size / 1024 / 1024:.2f}MB exceeds maximum allowed size "
                f"of {MAX_IMAGE_SIZE // 1024 // 1024}MB",
                self.name,
            )

    # =========================================================================
    # Image helpers
    # =========================================================================

    @staticmethod
    def buffer_to_data_url(buffer: bytes, mime_type: str) -> str:
        return GeneratedImage(buffer=buffer, mime_type=mime_type).to_data_url()

    def data_url_to_buffer(self, data_url: str) -> tuple[bytes, str]:
        """Decode a base64 data URL with size validation."""
        match = DATA_URL_PATTERN.match(data_url.strip())
        if not match:
            raise InvalidInputError("Invalid data URL format", self.name)

        payload = match.group(2)
        # Reject before decoding: base64 inflates by 4/3
        self._check_image_size(len(payload) * 3 // 4)
        try:
            buffer = base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise InvalidInputError(f"Invalid base64 payload: {e}", self.name) from e

        self._check_image_size(len(buffer))
        return buffer, match.group(1)

    def get_image_buffer(self, source: str) -> tuple[bytes, str]:
        """Load an image from a data URL, absolute path or file:// URL.

        Returns:
            Tuple of (image bytes, mime type)
        """
        if source.startswith("data:"):
            return self.data_url_to_buffer(source)

        file_path = source
        if source.startswith("file://"):
            file_path = unquote(urlparse(source).path)

        path = Path(file_path)
        if not path.is_absolute():
            raise InvalidInputError(
                f"Unsupported image source (expected data URL, absolute path or "
                f"file:// URL): {source[:100]}",
                self.name,
            )

        try:
            self._check_image_size(path.stat().st_size)
            buffer = path.read_bytes()
        except OSError as e:
            raise InvalidInputError(
                f"Failed to load image from path: {file_path}. Error: {e}", self.name
            ) from e

        mime_type = EXTENSION_MIME_TYPES.get(path.suffix.lower(), "image/png")
        return buffer, mime_type

    def detect_image_dimensions(self, source: str) -> tuple[int, int]:
        """Read width and height from the image header."""
        buffer, _ = self.get_image_buffer(source)
        try:
            with Image.open(io.BytesIO(buffer)) as img:
                width, height = img.size
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidInputError(
                f"Failed to detect image dimensions: {e}", self.name
            ) from e

        if not width or not height:
            raise InvalidInputError("Could not detect image dimensions", self.name)
        return width, height

    # =========================================================================
    # Rate limiting, caching, retry
    # =========================================================================

    def check_rate_limit(self) -> None:
        try:
            self.rate_limiter.acquire(self.name)
        except RateLimitExceeded as e:
            raise RateLimitError(str(e), self.name, retry_after=e.retry_after) from e

    def generate_cache_key(self, request: ImageRequest, operation: str = "generate") -> str:
        return self.cache.make_key(self.name, {"operation": operation, **request.to_dict()})

    def get_cached_result(self, cache_key: str) -> Optional[ProviderResult]:
        return self.cache.get(cache_key)

    def cache_result(self, cache_key: str, result: ProviderResult) -> None:
        self.cache.set(cache_key, replace(result, images=list(result.images)))

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
    ) -> T:
        """Retry retryable failures with exponential backoff (1s, 2s, 4s ... max 10s)."""
        return await retry_async(
            operation,
            max_attempts=self.max_attempts if max_attempts is None else max_attempts,
            sleep=self._sleep,
            label=self.name,
        )

    async def _follow_up(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        """Run a request that follows an accepted (billed) job submission.

        Transient failures are retried here, and whatever still fails is raised as
        non-retryable so the outer retry never submits the job a second time.
        """
        try:
            return await self.execute_with_retry(operation)
        except ProviderError as e:
            if not e.retryable:
                raise
            raise ProviderError(
                f"{label} failed after job submission: {e.args[0]}",
                self.name,
                retryable=False,
            ) from e

    # =========================================================================
    # HTTP helpers
    # =========================================================================

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, mapping transport and HTTP errors to ProviderError."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise wrap_http_error(e, self.name) from e

        if response.is_error:
            raise error_from_response(response, self.name)
        return response

    async def _download_image(self, url: str) -> GeneratedImage:
        """Fetch a generated image from a result URL (or decode a data URL)."""
        if url.startswith("data:"):
            buffer, mime_type = self.data_url_to_buffer(url)
            return GeneratedImage(buffer=buffer, mime_type=mime_type)

        response = await self._follow_up(
            lambda: self._request("GET", url), "Image download"
        )
        self._check_image_size(len(response.content))

        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            guessed, _ = mimetypes.guess_type(urlparse(url).path)
            mime_type = guessed or "image/png"
        return GeneratedImage(buffer=response.content, mime_type=mime_type)

    async def _poll(
        self,
        check: Callable[[], Awaitable[Optional[T]]],
        label: str,
    ) -> T:
        """Call ``check`` until it returns a value or ``max_poll_wait`` elapses.

        ``check`` returns None while the job is pending and raises on failure.
        Transient check failures are retried without resubmitting the job.
        """
        elapsed = 0.0
        while True:
            result = await self._follow_up(check, f"{label} status check")
            if result is not None:
                return result
            if elapsed >= self.max_poll_wait:
                break
            # Progressive backoff: base interval for the first minute, slower after
            interval = self.poll_interval if elapsed < 60 else self.poll_interval * 2.5
            await self._sleep(interval)
            elapsed += interval
            logger.debug(f"{self.name} {label} pending ({elapsed:.0f}s elapsed)")

        raise ProviderError(
            f"{label} did not complete within {self.max_poll_wait:.0f}s",
            self.name,
            retryable=False,
        )

    def _result(
        self, images: list[GeneratedImage], model: Optional[str] = None
    ) -> ProviderResult:
        return ProviderResult(images=images, provider=self.name, model=model)

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

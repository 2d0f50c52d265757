"""Models for provider-based image generation (OpenAI, Stability, Leonardo, BFL, ...)."""

import base64
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DATA_URL_PATTERN = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)


class UseCase(str, Enum):
    """Prompt categories used to rank provider preference."""

    LOGO = "logo"
    TEXT_HEAVY = "text-heavy"
    PHOTOREALISTIC = "photorealistic"
    CAROUSEL = "carousel"
    QUICK_DRAFT = "quick-draft"
    POST_PROCESS = "post-process"
    ARTISTIC = "artistic"
    RENDER_3D = "3d-render"


@dataclass
class GenerateInput:
    """Request for text-to-image generation."""

    prompt: str
    model: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    seed: Optional[int] = None
    num_images: int = 1
    negative_prompt: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary (used for cache keys and logging)."""
        return {
            "prompt": self.prompt,
            "model": self.model,
            "width": self.width,
            "height": self.height,
            "seed": self.seed,
            "num_images": self.num_images,
            "negative_prompt": self.negative_prompt,
        }


@dataclass
class EditInput:
    """Request for image editing (image-to-image)."""

    prompt: str
    source_image: str  # data:image/...;base64, absolute path, or file:// URL
    model: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    seed: Optional[int] = None
    mask_image: Optional[str] = None
    strength: Optional[float] = None  # 0 = keep source, 1 = full transform

    def to_dict(self) -> dict:
        """Convert to dictionary (used for cache keys and logging)."""
        return {
            "prompt": self.prompt,
            "source_image": self.source_image,
            "model": self.model,
            "width": self.width,
            "height": self.height,
            "seed": self.seed,
            "mask_image": self.mask_image,
            "strength": self.strength,
        }


@dataclass
class GeneratedImage:
    """A single generated image held in memory."""

    buffer: bytes
    mime_type: str = "image/png"

    @property
    def size_bytes(self) -> int:
        return len(self.buffer)

    def to_data_url(self) -> str:
        """Encode as a base64 data URL."""
        encoded = base64.b64encode(self.buffer).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, data_url: str) -> "GeneratedImage":
        """Decode a base64 data URL.

        Raises:
            ValueError: If the string is not a base64 data URL
        """
        match = DATA_URL_PATTERN.match(data_url.strip())
        if not match:
            raise ValueError("Invalid data URL format")
        return cls(buffer=base64.b64decode(match.group(2)), mime_type=match.group(1))


@dataclass
class ProviderResult:
    """Result of a generate or edit call."""

    images: list[GeneratedImage]
    provider: str
    model: Optional[str] = None
    generation_time_ms: int = 0
    cached: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses (images as data URLs)."""
        return {
            "images": [
                {"url": img.to_data_url(), "mime_type": img.mime_type}
                for img in self.images
            ],
            "provider": self.provider,
            "model": self.model,
            "generation_time_ms": self.generation_time_ms,
            "cached": self.cached,
        }


@dataclass(frozen=True)
class ProviderCapabilities:
    """What a provider can do."""

    supports_generate: bool = True
    supports_edit: bool = False
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    supported_models: tuple[str, ...] = ()

    def supports(self, operation: str) -> bool:
        if operation == "generate":
            return self.supports_generate
        if operation == "edit":
            return self.supports_edit
        return False

    def to_dict(self) -> dict:
        return {
            "supports_generate": self.supports_generate,
            "supports_edit": self.supports_edit,
            "max_width": self.max_width,
            "max_height": self.max_height,
            "supported_models": list(self.supported_models),
        }


@dataclass(frozen=True)
class PromptAnalysis:
    """Best use case detected for a prompt."""

    use_case: UseCase
    confidence: float  # 0.0 - 1.0
    matched_keywords: tuple[str, ...] = ()


@dataclass
class ProviderRecommendations:
    """Ranked providers for a prompt with a human-readable reason."""

    primary: list[str]
    secondary: list[str]
    reason: str

    def to_dict(self) -> dict:
        return {
            "primary": list(self.primary),
            "secondary": list(self.secondary),
            "reason": self.reason,
        }


@dataclass
class ValidationResult:
    """Outcome of a provider diagnostic run."""

    provider: str
    configured: bool
    success: bool
    error: Optional[str] = None
    response_time_ms: Optional[int] = None


@dataclass
class ValidationSummary:
    """Aggregated diagnostic results."""

    results: list[ValidationResult] = field(default_factory=list)

    @property
    def configured(self) -> list[ValidationResult]:
        return [r for r in self.results if r.configured]

    @property
    def successful(self) -> list[ValidationResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[ValidationResult]:
        return [r for r in self.results if r.configured and not r.success]

    @property
    def not_configured(self) -> list[ValidationResult]:
        return [r for r in self.results if not r.configured]

    @property
    def ok(self) -> bool:
        """True when at least one provider produced an image."""
        return bool(self.successful)

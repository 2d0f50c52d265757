"""Image generation providers package (OpenAI, Stability, Leonardo, Ideogram, BFL, ...)."""

from services.image_providers.base import ImageProvider
from services.image_providers.bfl import BFLImageProvider
from services.image_providers.clipdrop import ClipdropImageProvider
from services.image_providers.errors import (
    InvalidInputError,
    NotConfiguredError,
    ProviderError,
    RateLimitError,
    UnsupportedOperationError,
)
from services.image_providers.fal import FalImageProvider
from services.image_providers.gemini import GeminiImageProvider
from services.image_providers.ideogram import IdeogramImageProvider
from services.image_providers.leonardo import LeonardoImageProvider
from services.image_providers.openai import OpenAIImageProvider
from services.image_providers.replicate import ReplicateImageProvider
from services.image_providers.stability import StabilityImageProvider

# Provider name -> adapter class, in the order diagnostics report them
PROVIDER_CLASSES: dict[str, type[ImageProvider]] = {
    cls.name: cls
    for cls in (
        OpenAIImageProvider,
        StabilityImageProvider,
        LeonardoImageProvider,
        IdeogramImageProvider,
        BFLImageProvider,
        FalImageProvider,
        ClipdropImageProvider,
        ReplicateImageProvider,
        GeminiImageProvider,
    )
}

__all__ = [
    "PROVIDER_CLASSES",
    "ImageProvider",
    "ProviderError",
    "InvalidInputError",
    "NotConfiguredError",
    "RateLimitError",
    "UnsupportedOperationError",
    "OpenAIImageProvider",
    "StabilityImageProvider",
    "LeonardoImageProvider",
    "IdeogramImageProvider",
    "BFLImageProvider",
    "FalImageProvider",
    "ClipdropImageProvider",
    "ReplicateImageProvider",
    "GeminiImageProvider",
]

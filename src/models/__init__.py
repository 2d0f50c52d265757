# Data models for image generation providers
from .image_generation import (
    EditInput,
    GenerateInput,
    GeneratedImage,
    PromptAnalysis,
    ProviderCapabilities,
    ProviderRecommendations,
    ProviderResult,
    UseCase,
    ValidationResult,
    ValidationSummary,
)

__all__ = [
    "EditInput",
    "GenerateInput",
    "GeneratedImage",
    "PromptAnalysis",
    "ProviderCapabilities",
    "ProviderRecommendations",
    "ProviderResult",
    "UseCase",
    "ValidationResult",
    "ValidationSummary",
]

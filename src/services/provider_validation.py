"""Provider diagnostics - runs a tiny generation against each provider."""

import logging
import time
from typing import Callable, Optional, Sequence

from models.image_generation import GenerateInput, ValidationResult, ValidationSummary
from services.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)

TEST_PROMPT = "A simple red circle on white background"
TEST_SIZE = 512

ALL_PROVIDERS = (
    "OPENAI",
    "STABILITY",
    "LEONARDO",
    "IDEOGRAM",
    "BFL",
    "FAL",
    "CLIPDROP",
    "REPLICATE",
    "GEMINI",
)


async def validate_provider(registry: ProviderRegistry, provider_name: str) -> ValidationResult:
    """Check one provider's configuration and make one real request.

    Failures are reported in the result, never raised.
    """
    start_time = time.monotonic()
    provider = registry.get_provider(provider_name)

    if provider is None:
        return ValidationResult(
            provider=provider_name,
            configured=False,
            success=False,
            error="Provider not available",
        )

    if not provider.is_configured():
        return ValidationResult(
            provider=provider_name,
            configured=False,
            success=False,
            error=f"Provider not configured (missing {', '.join(provider.get_required_env_vars())})",
        )

    try:
        result = await provider.generate(
            GenerateInput(prompt=TEST_PROMPT, width=TEST_SIZE, height=TEST_SIZE)
        )
    except Exception as e:
        logger.warning(f"Validation of {provider_name} failed: {e}")
        return ValidationResult(
            provider=provider_name,
            configured=True,
            success=False,
            error=str(e),
            response_time_ms=int((time.monotonic() - start_time) * 1000),
        )

    response_time_ms = int((time.monotonic() - start_time) * 1000)
    if not result.images:
        return ValidationResult(
            provider=provider_name,
            configured=True,
            success=False,
            error="No images returned",
            response_time_ms=response_time_ms,
        )

    return ValidationResult(
        provider=provider_name,
        configured=True,
        success=True,
        response_time_ms=response_time_ms,
    )


async def validate_providers(
    registry: ProviderRegistry,
    provider_names: Sequence[str] = ALL_PROVIDERS,
    on_result: Optional[Callable[[ValidationResult], None]] = None,
) -> ValidationSummary:
    """Validate providers one after another (sequential to stay under rate limits)."""
    summary = ValidationSummary()
    for name in provider_names:
        result = await validate_provider(registry, name.upper())
        summary.results.append(result)
        if on_result is not None:
            on_result(result)
    return summary

"""Configuration loading and validation for the image generation providers."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Environment variable holding each provider's API key
PROVIDER_ENV_VARS = {
    "OPENAI": "OPENAI_API_KEY",
    "STABILITY": "STABILITY_API_KEY",
    "LEONARDO": "LEONARDO_API_KEY",
    "IDEOGRAM": "IDEOGRAM_API_KEY",
    "BFL": "BFL_API_KEY",
    "FAL": "FAL_KEY",
    "CLIPDROP": "CLIPDROP_API_KEY",
    "REPLICATE": "REPLICATE_API_TOKEN",
    "GEMINI": "GEMINI_API_KEY",
}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def is_test_mode() -> bool:
    """True under pytest or when IMAGE_GEN_ENV=test."""
    return (
        os.getenv("IMAGE_GEN_ENV", "").lower() == "test"
        or "PYTEST_CURRENT_TEST" in os.environ
    )


def load_config(env_file: Optional[str] = None) -> dict:
    """Load configuration from environment variables.

    Args:
        env_file: Optional .env file to load first (existing variables win)
    """
    if env_file:
        load_dotenv(Path(env_file))

    config = {
        # Provider API keys, keyed by provider name
        "api_keys": {
            provider: os.getenv(env_var, "")
            for provider, env_var in PROVIDER_ENV_VARS.items()
        },
        # HTTP
        "timeout_seconds": float(os.getenv("IMAGE_GEN_TIMEOUT", "30")),
        # Response caching
        "cache_enabled": _env_bool("IMAGE_GEN_CACHE_ENABLED", "true"),
        "cache_ttl_seconds": float(os.getenv("IMAGE_GEN_CACHE_TTL", "300")),
        # Rate limiting (per provider)
        "rate_limit_requests": int(os.getenv("IMAGE_GEN_RATE_LIMIT", "10")),
        "rate_limit_window_seconds": float(os.getenv("IMAGE_GEN_RATE_WINDOW", "60")),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _env_bool("LOG_JSON", "false"),
        "test_mode": is_test_mode(),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not any(config.get("api_keys", {}).values()):
        errors.append(
            "No provider API keys set. Configure at least one of: "
            + ", ".join(PROVIDER_ENV_VARS.values())
        )

    if config.get("timeout_seconds", 0) <= 0:
        errors.append("IMAGE_GEN_TIMEOUT must be positive")

    if config.get("cache_ttl_seconds", 0) <= 0:
        errors.append("IMAGE_GEN_CACHE_TTL must be positive")

    if config.get("rate_limit_requests", 0) < 1:
        errors.append("IMAGE_GEN_RATE_LIMIT must be at least 1")

    if config.get("rate_limit_window_seconds", 0) <= 0:
        errors.append("IMAGE_GEN_RATE_WINDOW must be positive")

    return errors

"""Provider registry - owns shared state and routes requests to providers."""

import logging
from typing import Optional

import httpx

from models.image_generation import (
    EditInput,
    GenerateInput,
    ProviderRecommendations,
    ProviderResult,
)
from services.image_providers import PROVIDER_CLASSES, ImageProvider
from services.image_providers.errors import NotConfiguredError
from services.provider_selector import AUTO_PROVIDER, ProviderSelector, default_selector
from utils.cache import ResponseCache, load_cache_from_config
from utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """One instance per process: every provider, plus the cache, rate limiter and
    HTTP client they share.

    Example usage:
        async with ProviderRegistry.from_config(load_config()) as registry:
            result = await registry.generate(GenerateInput(prompt="a minimalist logo"))
    """

    def __init__(
        self,
        providers: dict[str, ImageProvider],
        cache: ResponseCache,
        rate_limiter: RateLimiter,
        selector: ProviderSelector = default_selector,
        client: Optional[httpx.AsyncClient] = None,
        owns_client: bool = False,
    ):
        self.providers = providers
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.selector = selector
        self._client = client
        self._owns_client = owns_client

    @classmethod
    def from_config(
        cls,
        config: dict,
        client: Optional[httpx.AsyncClient] = None,
        selector: ProviderSelector = default_selector,
    ) -> "ProviderRegistry":
        """Build every known provider from a ``load_config()`` dictionary."""
        cache = load_cache_from_config(config)
        rate_limiter = RateLimiter(
            max_requests=config.get("rate_limit_requests", 10),
            window_seconds=config.get("rate_limit_window_seconds", 60.0),
        )
        timeout = config.get("timeout_seconds", 30.0)
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=timeout)
        api_keys = config.get("api_keys", {})

        providers = {
            name: provider_cls(
                api_key=api_keys.get(name, ""),
                client=client,
                cache=cache,
                rate_limiter=rate_limiter,
                timeout=timeout,
                test_mode=config.get("test_mode"),
            )
            for name, provider_cls in PROVIDER_CLASSES.items()
        }
        return cls(
            providers,
            cache,
            rate_limiter,
            selector=selector,
            client=client,
            owns_client=owns_client,
        )

    def names(self) -> list[str]:
        return list(self.providers)

    def get_provider(self, name: str) -> Optional[ImageProvider]:
        return self.providers.get(name.upper())

    def configured_providers(self, operation: Optional[str] = None) -> list[str]:
        """Names of providers with valid credentials (and the operation, if given)."""
        return [
            name
            for name, provider in self.providers.items()
            if provider.is_configured()
            and (operation is None or provider.get_capabilities().supports(operation))
        ]

    def choose_provider(
        self,
        prompt: str,
        requested: Optional[str] = None,
        operation: str = "generate",
    ) -> ImageProvider:
        """Resolve "auto" or an explicit name to a configured provider.

        Raises:
            NotConfiguredError: If no configured provider supports the operation
        """
        available = self.configured_providers(operation)
        name = self.selector.select_provider(prompt, available, requested)
        if name is None:
            raise NotConfiguredError(
                f"No configured provider supports {operation}. Set one of: "
                + ", ".join(p.env_var for p in self.providers.values()),
                requested or AUTO_PROVIDER,
            )
        return self.providers[name]

    async def generate(
        self, request: GenerateInput, provider: Optional[str] = AUTO_PROVIDER
    ) -> ProviderResult:
        chosen = self.choose_provider(request.prompt, provider, "generate")
        logger.info(f"Routing generate to {chosen.name}")
        return await chosen.generate(request)

    async def edit(
        self, request: EditInput, provider: Optional[str] = AUTO_PROVIDER
    ) -> ProviderResult:
        chosen = self.choose_provider(request.prompt, provider, "edit")
        logger.info(f"Routing edit to {chosen.name}")
        return await chosen.edit(request)

    def recommend(self, prompt: str) -> ProviderRecommendations:
        return self.selector.get_provider_recommendations(prompt)

    async def close(self) -> None:
        """Close provider-owned clients, and the shared client if the registry created it."""
        for provider in self.providers.values():
            await provider.close()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ProviderRegistry":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

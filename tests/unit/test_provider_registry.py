"""Tests for ProviderRegistry routing and shared state."""

import base64

import httpx
import pytest

from models.image_generation import EditInput, GenerateInput
from services.image_providers import BFLImageProvider, OpenAIImageProvider
from services.image_providers.errors import NotConfiguredError
from services.provider_registry import ProviderRegistry

TEST_KEY = "test-key-1234567890"
OPENAI_URL = "https://api.openai.com/v1/images/generations"
IDEOGRAM_URL = "https://api.ideogram.ai/v1/ideogram-v3/generate"


def make_config(*providers: str, **overrides) -> dict:
    config = {
        "api_keys": {name: TEST_KEY for name in providers},
        "timeout_seconds": 30.0,
        "cache_enabled": True,
        "cache_ttl_seconds": 300.0,
        "rate_limit_requests": 10,
        "rate_limit_window_seconds": 60.0,
        "test_mode": True,
    }
    config.update(overrides)
    return config


@pytest.fixture
def api_log():
    return []


@pytest.fixture
def client(api_log, png_bytes):
    """HTTP client answering OpenAI and Ideogram requests with a PNG."""

    def handler(request: httpx.Request) -> httpx.Response:
        api_log.append(str(request.url))
        url = str(request.url)
        if url == OPENAI_URL or url.endswith("/images/edits"):
            return httpx.Response(
                200, json={"data": [{"b64_json": base64.b64encode(png_bytes).decode()}]}
            )
        if url == IDEOGRAM_URL:
            return httpx.Response(200, json={"data": [{"url": "https://ideogram.ai/x.png"}]})
        if url == "https://ideogram.ai/x.png":
            return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})
        return httpx.Response(404, json={"error": "not found"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestRegistryConstruction:
    """Tests for ProviderRegistry.from_config."""

    def test_builds_every_provider(self, client):
        registry = ProviderRegistry.from_config(make_config(), client=client)
        assert registry.names() == [
            "OPENAI", "STABILITY", "LEONARDO", "IDEOGRAM", "BFL",
            "FAL", "CLIPDROP", "REPLICATE", "GEMINI",
        ]

    def test_providers_share_state(self, client):
        registry = ProviderRegistry.from_config(make_config(), client=client)
        for provider in registry.providers.values():
            assert provider.cache is registry.cache
            assert provider.rate_limiter is registry.rate_limiter
            assert provider.client is client

    def test_config_values_applied(self, client):
        registry = ProviderRegistry.from_config(
            make_config(cache_enabled=False, rate_limit_requests=3), client=client
        )
        assert registry.cache.enabled is False
        assert registry.rate_limiter.max_requests == 3

    def test_get_provider_is_case_insensitive(self, client):
        registry = ProviderRegistry.from_config(make_config(), client=client)
        assert isinstance(registry.get_provider("bfl"), BFLImageProvider)
        assert registry.get_provider("unknown") is None

    def test_configured_providers(self, client):
        registry = ProviderRegistry.from_config(make_config("IDEOGRAM", "OPENAI"), client=client)
        assert registry.configured_providers() == ["OPENAI", "IDEOGRAM"]
        assert registry.configured_providers("edit") == ["OPENAI"]


@pytest.mark.unit
class TestRegistryRouting:
    """Tests for choose_provider/generate/edit."""

    def test_auto_selects_by_prompt(self, client):
        registry = ProviderRegistry.from_config(make_config("IDEOGRAM", "OPENAI"), client=client)
        assert registry.choose_provider("create a minimalist logo").name == "IDEOGRAM"

    def test_explicit_provider(self, client):
        registry = ProviderRegistry.from_config(make_config("IDEOGRAM", "OPENAI"), client=client)
        provider = registry.choose_provider("create a minimalist logo", "openai")
        assert isinstance(provider, OpenAIImageProvider)

    def test_edit_skips_generate_only_providers(self, client):
        registry = ProviderRegistry.from_config(make_config("IDEOGRAM", "OPENAI"), client=client)
        assert registry.choose_provider("a logo", operation="edit").name == "OPENAI"

    def test_nothing_configured(self, client):
        registry = ProviderRegistry.from_config(make_config(), client=client)
        with pytest.raises(NotConfiguredError, match="OPENAI_API_KEY"):
            registry.choose_provider("a logo")

    def test_no_edit_capable_provider(self, client):
        registry = ProviderRegistry.from_config(make_config("IDEOGRAM"), client=client)
        with pytest.raises(NotConfiguredError, match="edit"):
            registry.choose_provider("a logo", operation="edit")

    @pytest.mark.asyncio
    async def test_generate_routes_to_selected_provider(self, client, api_log, png_bytes):
        registry = ProviderRegistry.from_config(make_config("IDEOGRAM", "OPENAI"), client=client)

        result = await registry.generate(GenerateInput(prompt="create a minimalist logo"))

        assert result.provider == "IDEOGRAM"
        assert result.images[0].buffer == png_bytes
        assert api_log[0] == IDEOGRAM_URL

    @pytest.mark.asyncio
    async def test_generate_with_requested_provider(self, client):
        registry = ProviderRegistry.from_config(make_config("IDEOGRAM", "OPENAI"), client=client)
        result = await registry.generate(GenerateInput(prompt="create a logo"), provider="OPENAI")
        assert result.provider == "OPENAI"

    @pytest.mark.asyncio
    async def test_shared_cache_across_calls(self, client, api_log):
        registry = ProviderRegistry.from_config(make_config("OPENAI"), client=client)
        request = GenerateInput(prompt="a red circle")

        await registry.generate(request)
        second = await registry.generate(request)

        assert second.cached is True
        assert len(api_log) == 1
        assert registry.cache.get_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_edit(self, client, png_data_url):
        registry = ProviderRegistry.from_config(make_config("OPENAI"), client=client)
        result = await registry.edit(EditInput(prompt="add a hat", source_image=png_data_url))
        assert result.provider == "OPENAI"

    def test_recommend(self, client):
        registry = ProviderRegistry.from_config(make_config(), client=client)
        assert registry.recommend("quick draft").primary == ["FAL"]

    @pytest.mark.asyncio
    async def test_context_manager_closes_own_client(self):
        async with ProviderRegistry.from_config(make_config()) as registry:
            own_client = registry.providers["OPENAI"].client
        assert own_client.is_closed

    @pytest.mark.asyncio
    async def test_close_leaves_caller_client_open(self, client):
        async with ProviderRegistry.from_config(make_config(), client=client):
            pass
        assert not client.is_closed
        await client.aclose()

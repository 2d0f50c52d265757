"""Shared pytest fixtures for image provider tests."""

import base64
import io
import sys
import tempfile
from pathlib import Path
from typing import Callable, Generator

import httpx
import pytest
from PIL import Image

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from utils.cache import ResponseCache  # noqa: E402
from utils.rate_limiter import RateLimiter  # noqa: E402

TEST_API_KEY = "test-key-1234567890"


class FakeClock:
    """Manually advanced time source for cache and rate limiter tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_png(width: int = 64, height: int = 32, color: str = "red") -> bytes:
    output = io.BytesIO()
    Image.new("RGB", (width, height), color).save(output, format="PNG")
    return output.getvalue()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def png_bytes() -> bytes:
    """A 64x32 red PNG."""
    return make_png()


@pytest.fixture
def png_data_url(png_bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def png_file(temp_dir, png_bytes) -> Path:
    path = temp_dir / "source.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def make_provider(sleeper) -> Callable:
    """Factory building a provider whose HTTP traffic goes to ``handler``.

    ``handler`` receives each httpx.Request and returns an httpx.Response.
    """

    def factory(provider_cls, handler, api_key: str = TEST_API_KEY, **kwargs):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("cache", ResponseCache())
        kwargs.setdefault("rate_limiter", RateLimiter())
        kwargs.setdefault("test_mode", True)
        return provider_cls(api_key=api_key, client=client, sleep=sleeper, **kwargs)

    return factory

"""Error taxonomy shared by every image provider.

Every failure carries the originating provider's name and a ``retryable`` flag so the
retry helper and callers can decide policy without provider-specific knowledge.
"""

from typing import Optional

import httpx


class ProviderError(Exception):
    """Error from an image generation provider."""

    def __init__(self, message: str, provider: str, retryable: bool = False):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable

    def __str__(self) -> str:
        return f"[{self.provider}] {super().__str__()}"


class InvalidInputError(ProviderError):
    """Prompt, image source or size rejected before any network call."""

    def __init__(self, message: str, provider: str):
        super().__init__(message, provider, retryable=False)


class NotConfiguredError(ProviderError):
    """Missing or invalid credentials."""

    def __init__(self, message: str, provider: str):
        super().__init__(message, provider, retryable=False)


class UnsupportedOperationError(ProviderError):
    """The provider does not offer the requested operation."""

    def __init__(self, message: str, provider: str):
        super().__init__(message, provider, retryable=False)


class RateLimitError(ProviderError):
    """Too many requests, locally or as reported by the provider (HTTP 429)."""

    def __init__(self, message: str, provider: str, retry_after: Optional[int] = None):
        super().__init__(message, provider, retryable=True)
        self.retry_after = retry_after


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of a provider error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase

    if isinstance(data, dict):
        error = data.get("error") or data.get("errors")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if isinstance(error, list) and error:
            return "; ".join(str(e) for e in error)
        if error:
            return str(error)
        for key in ("message", "detail", "name"):
            if data.get(key):
                return str(data[key])
    return str(data)[:500]


def error_from_response(response: httpx.Response, provider: str) -> ProviderError:
    """Map a non-2xx response onto the error taxonomy.

    429 and 5xx are retryable; any other 4xx (bad request, bad key, moderation)
    is not.
    """
    status = response.status_code
    detail = _error_detail(response)
    message = f"API error {status}: {detail}"

    if status == 429:
        retry_after = response.headers.get("retry-after")
        return RateLimitError(
            message,
            provider,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
        )
    if status in (401, 403):
        return NotConfiguredError(f"Invalid API key ({message})", provider)
    return ProviderError(message, provider, retryable=status >= 500)


def wrap_http_error(error: Exception, provider: str) -> ProviderError:
    """Convert an httpx exception into a ProviderError."""
    if isinstance(error, ProviderError):
        return error
    if isinstance(error, httpx.HTTPStatusError):
        return error_from_response(error.response, provider)
    if isinstance(error, httpx.TimeoutException):
        return ProviderError(
            "Request timed out. Try again in a few seconds.", provider, retryable=True
        )
    if isinstance(error, httpx.TransportError):
        return ProviderError(f"Network error: {error}", provider, retryable=True)
    return ProviderError(f"Request failed: {error}", provider, retryable=False)

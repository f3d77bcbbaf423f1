from __future__ import annotations


class ProviderError(RuntimeError):
    """Base exception for provider-related failures."""


class ProviderRequestError(ProviderError):
    """HTTP/network/transport layer failures (timeouts, connection errors, non-2xx, etc.)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderTransportError(ProviderRequestError):
    """No HTTP response at all: timeout, DNS failure, connection reset."""


class ProviderServerError(ProviderRequestError):
    """Provider answered with a 5xx."""


class ProviderClientError(ProviderRequestError):
    """Provider answered with a 4xx other than 429. Retrying will not help."""


class ProviderRateLimited(ProviderRequestError):
    """Provider throttled the request (e.g., HTTP 429)."""

    def __init__(self, message: str, *, retry_after_s: float | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after_s = retry_after_s


class ProviderResponseError(ProviderError):
    """Provider returned a well-formed response indicating an application-level error."""

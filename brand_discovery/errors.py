"""Classified failures raised while discovering and hydrating products.

Each error carries the HTTP status the API layer should answer with, so the
FastAPI exception handler never has to inspect message text.
"""
from __future__ import annotations

from typing import Optional


class DiscoveryError(RuntimeError):
    """Base class for every failure the discovery pipeline reports."""

    status_code: int = 500
    label: str = "Discovery error"
    hint: Optional[str] = None

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        # Provider's own error text, kept for diagnostics.
        self.detail = detail

    def __str__(self) -> str:
        if self.detail and self.detail not in self.message:
            return f"{self.message}: {self.detail}"
        return self.message


class InvalidInputError(DiscoveryError):
    status_code = 400
    label = "Missing keyword parameter"


class ConfigurationError(DiscoveryError):
    status_code = 500
    label = "Keepa API key is missing or invalid"
    hint = "Set the KEEPA_KEY environment variable to a real Keepa API key"


class AuthError(DiscoveryError):
    status_code = 401
    label = "Keepa API key is missing or invalid"
    hint = "Check that KEEPA_KEY holds an active Keepa API key"


class RateLimitError(DiscoveryError):
    status_code = 429
    label = "Keepa API rate limit exceeded"
    hint = "Please wait a few minutes and try again"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[str] = None,
        retry_after_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.retry_after_seconds = retry_after_seconds


class UpstreamError(DiscoveryError):
    status_code = 500
    label = "Keepa API error"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[str] = None,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.upstream_status = upstream_status

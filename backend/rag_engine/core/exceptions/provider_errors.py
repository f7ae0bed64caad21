"""
Failure taxonomy for embedding and language model providers.

ConfigurationError and ApiError fail the current operation; RateLimitError is
the only one retried. A missing provider is not an error; callers get an
"unavailable" result instead.
"""

from typing import Optional


class ProviderError(Exception):
    """Base class for provider failures."""


class ConfigurationError(ProviderError):
    """Missing or invalid credentials, model or endpoint."""


class ApiError(ProviderError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(ApiError):
    pass
"""Normalized provider errors.

Every provider translates its SDK or HTTP failures into one of these so that
callers never depend on vendor exception types.
"""


class ProviderError(Exception):
    """Base class for a failed provider invocation."""

    transient = False

    def __init__(self, message: str, provider: str | None = None, model: str | None = None):
        super().__init__(message)
        self.provider = provider
        self.model = model


class ProviderUnavailable(ProviderError):
    """Provider is unreachable or returned a server error."""

    transient = True


class ProviderNotConfigured(ProviderUnavailable):
    """No credentials for the provider; retrying cannot help."""

    transient = False


class InvalidModel(ProviderError):
    """Model does not exist under the requested provider."""


class ProviderRateLimited(ProviderError):
    """Provider rejected the call because of rate limiting."""

    transient = True


class ProviderTimeout(ProviderError):
    """Provider did not answer within the configured timeout."""

    transient = True

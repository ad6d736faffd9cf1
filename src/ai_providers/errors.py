"""Package specific exception hierarchy."""

from __future__ import annotations

from collections.abc import Sequence

_NOT_FOUND_MARKERS = (
    "not found",
    "invalid model",
    "not available",
    "does not exist",
    "model_not_found",
    "deploymentnotfound",
)
_RATE_LIMIT_MARKERS = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "quota",
    "resource_exhausted",
    "too many requests",
)
# billing failures reuse 429 but never clear up on their own
_BILLING_MARKERS = ("insufficient_quota", "billing_hard_limit")


class AIProviderError(Exception):
    """Base exception for ai_providers package."""


class ConfigurationError(AIProviderError):
    """Raised when a configuration value is present but malformed."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key


class NotConfiguredError(AIProviderError):
    """Raised when an adapter is used without its credentials."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is not configured.")
        self.provider = provider


class UnsupportedProviderError(AIProviderError):
    """Raised when a provider name is not known to the registry."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Provider '{provider}' is not available.")
        self.provider = provider


class NoProviderAvailable(AIProviderError):
    """Raised when no provider could be resolved from the configuration."""

    def __init__(self, message: str = "No AI provider configured.") -> None:
        super().__init__(message)


class ModelNotFoundError(AIProviderError):
    """Raised when the requested model is unknown to the backend."""

    def __init__(
        self,
        provider: str,
        model: str,
        alternatives: Sequence[str],
        message: str | None = None,
    ) -> None:
        detail = message or f"Model '{model}' is not available."
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.model = model
        self.alternatives: list[str] = list(alternatives)


class UnsupportedFeatureError(AIProviderError):
    """Raised when a requested feature is unsupported by a provider."""

    def __init__(self, feature: str) -> None:
        super().__init__(f"Feature '{feature}' is not supported.")
        self.feature = feature


class CompletionCancelled(AIProviderError):
    """Raised when a cancellation token fires during a completion."""


class UpstreamError(AIProviderError):
    """Represents provider-specific HTTP or API errors."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        suffix = f" (status {status_code})" if status_code is not None else ""
        super().__init__(f"{provider}: {message}{suffix}")
        self.provider = provider
        self.message = message
        self.status_code = status_code


class RateLimitedError(UpstreamError):
    """Raised when the backend rejects a call because of rate limits or quota."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(provider, message, status_code=status_code)
        self.retry_after = retry_after


def is_not_found_message(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in _NOT_FOUND_MARKERS)


def is_rate_limit_message(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def classify_failure(
    provider: str,
    message: str,
    *,
    status_code: int | None = None,
    model: str | None = None,
    alternatives: Sequence[str] = (),
    retry_after: float | None = None,
) -> AIProviderError:
    """Map a vendor failure onto the normalized error taxonomy.

    The HTTP status wins when it is decisive; otherwise the vendor text is
    inspected for rate-limit and not-found markers.
    """
    if any(marker in message.lower() for marker in _BILLING_MARKERS):
        return UpstreamError(provider, message, status_code=status_code)
    if status_code == 429 or is_rate_limit_message(message):
        return RateLimitedError(provider, message, status_code=status_code, retry_after=retry_after)
    client_side = status_code is None or 400 <= status_code < 500
    if model is not None and client_side and (status_code == 404 or is_not_found_message(message)):
        return ModelNotFoundError(provider, model, alternatives, message=message)
    return UpstreamError(provider, message, status_code=status_code)

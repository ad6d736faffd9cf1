"""Async façade routing completions to the active backend."""

from __future__ import annotations

from ai_providers.cancellation import CancellationToken
from ai_providers.capabilities import Capabilities
from ai_providers.config import ProviderConfig
from ai_providers.errors import NoProviderAvailable
from ai_providers.providers.base import ProviderAdapter
from ai_providers.providers.unavailable import NO_PROVIDER_MESSAGE, UnavailableAdapter
from ai_providers.registry import ProviderRegistry
from ai_providers.streaming import ProgressCallback
from ai_providers.types import (
    ChangeSignals,
    CompletionRequest,
    CompletionResponse,
    ConnectionReport,
    ModelRecommendation,
    ModelValidation,
)


class CompletionClient:
    """High-level entry point for callers that only need "a model".

    Retries and fallbacks live in the adapters; this class only forwards.
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        *,
        config: ProviderConfig | None = None,
    ) -> None:
        self._registry = registry if registry is not None else ProviderRegistry(config)

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def provider(self) -> ProviderAdapter:
        return self._registry.resolve_active()

    @property
    def provider_name(self) -> str:
        return self.provider.name

    @property
    def is_available(self) -> bool:
        return not isinstance(self.provider, UnavailableAdapter)

    def capabilities(self, model_id: str | None = None) -> Capabilities:
        """Return capability info for ``model_id`` on the active backend."""
        return self.provider.capabilities(model_id)

    async def complete(
        self,
        request: CompletionRequest,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> CompletionResponse:
        """Execute a completion on the active backend."""
        if not self.is_available:
            raise NoProviderAvailable(NO_PROVIDER_MESSAGE)
        return await self.provider.complete(
            request, on_progress=on_progress, cancel_token=cancel_token
        )

    def recommend_model(self, signals: ChangeSignals) -> ModelRecommendation:
        """Recommendation from the active backend.

        Unlike :meth:`ModelSelector.recommend`, which returns ``None`` when no
        backend is configured, this always returns a value: without a backend
        it is ``ModelRecommendation(model="rule-based")`` so callers can fall
        back to non-model handling without a ``None`` check.
        """
        return self.provider.recommend_model(signals)

    async def validate_model(self, model_id: str) -> ModelValidation:
        return await self.provider.validate_model(model_id)

    async def test_connection(self) -> ConnectionReport:
        return await self.provider.test_connection()

    async def aclose(self) -> None:
        await self._registry.aclose()

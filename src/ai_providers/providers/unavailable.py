"""Stand-in adapter used when no backend is configured."""

from __future__ import annotations

from typing import Any

from ai_providers.cancellation import CancellationToken
from ai_providers.config import ProviderConfig
from ai_providers.errors import NoProviderAvailable
from ai_providers.providers.base import ProviderAdapter
from ai_providers.streaming import ProgressCallback
from ai_providers.types import (
    ChangeSignals,
    CompletionRequest,
    CompletionResponse,
    ConnectionReport,
    ModelRecommendation,
    ModelValidation,
)

NO_PROVIDER_MESSAGE = "No AI provider configured."


class UnavailableAdapter(ProviderAdapter):
    """Sentinel returned by the registry instead of ``None``.

    Every operation degrades gracefully: completions raise
    :class:`NoProviderAvailable`, recommendations fall back to rule-based
    handling and diagnostics report that nothing is configured.
    """

    name = "none"

    def __init__(self, config: ProviderConfig | None = None, **kwargs: Any) -> None:
        super().__init__(config or ProviderConfig(), **kwargs)

    def is_configured(self) -> bool:
        return False

    def required_config(self) -> list[str]:
        return []

    def _base_url(self) -> str:
        return ""

    async def complete(
        self,
        request: CompletionRequest,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> CompletionResponse:
        raise NoProviderAvailable(NO_PROVIDER_MESSAGE)

    async def _complete(
        self,
        request: CompletionRequest,
        model: str,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResponse:
        raise NoProviderAvailable(NO_PROVIDER_MESSAGE)

    def recommend_model(self, signals: ChangeSignals) -> ModelRecommendation:
        return ModelRecommendation(model="rule-based", reason=NO_PROVIDER_MESSAGE)

    def suggest_alternatives(self, model_id: str) -> list[str]:
        return []

    async def validate_model(self, model_id: str) -> ModelValidation:
        return ModelValidation(available=False, reason="not_configured", error=NO_PROVIDER_MESSAGE)

    async def test_connection(self) -> ConnectionReport:
        return ConnectionReport(success=False, provider=self.name, error=NO_PROVIDER_MESSAGE)

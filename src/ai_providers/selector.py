"""Model recommendation from change-size signals."""

from __future__ import annotations

from ai_providers.providers.unavailable import UnavailableAdapter
from ai_providers.registry import ProviderRegistry
from ai_providers.types import ChangeSignals, ModelRecommendation


class ModelSelector:
    """Ask the active adapter which of its models fits a change.

    Returns ``None`` when no backend is configured so callers can switch to
    rule-based handling.
    """

    def __init__(self, registry: ProviderRegistry) -> None:
        self._registry = registry

    def recommend(
        self,
        signals: ChangeSignals | None = None,
        *,
        files: int = 0,
        lines: int = 0,
        breaking: bool = False,
        complex: bool = False,
    ) -> ModelRecommendation | None:
        adapter = self._registry.resolve_active()
        if isinstance(adapter, UnavailableAdapter):
            return None
        if signals is None:
            signals = ChangeSignals(files=files, lines=lines, breaking=breaking, complex=complex)
        return adapter.recommend_model(signals)

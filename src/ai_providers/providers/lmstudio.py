"""LM Studio local server (OpenAI-compatible API)."""

from __future__ import annotations

from typing import Any

from ai_providers.capabilities import Capabilities, rule
from ai_providers.errors import AIProviderError
from ai_providers.providers.openai_style import OpenAIStyleAdapter
from ai_providers.selection import uniform_table
from ai_providers.types import (
    ChangeSignals,
    CompletionRequest,
    ConnectionReport,
    ModelRecommendation,
    ModelValidation,
)


class LMStudioAdapter(OpenAIStyleAdapter):
    """Models loaded into a local LM Studio instance.

    Capabilities are guessed from family names in the model identifier, and
    tools / JSON mode are only forwarded when the guess allows them.
    """

    name = "lmstudio"
    default_model = "local-model"
    timeout_key = "LMSTUDIO_TIMEOUT"
    default_timeout_ms = 120000
    default_max_tokens = 2048
    default_temperature = 0.7
    gate_optional_features = True
    base_capabilities = Capabilities(streaming=True, local=True)

    capability_rules = (
        rule("llama", json_mode=True),
        rule("llama", "3", tool_use=True),
        rule("mistral", excludes=("llama",), json_mode=True),
        rule("mistral", "mixtral", excludes=("llama",), reasoning=True),
        rule(any_of=("vision", "llava", "bakllava"), vision=True),
    )

    fallbacks = (("", ("local-model", "mistral", "llama", "phi")),)

    def is_configured(self) -> bool:
        return self.config.has("LMSTUDIO_API_BASE")

    def required_config(self) -> list[str]:
        return ["LMSTUDIO_API_BASE"]

    def configured_model(self) -> str:
        return self.config.get_str("LMSTUDIO_MODEL") or self.default_model

    def _base_url(self) -> str:
        return (self.config.get_str("LMSTUDIO_API_BASE") or "http://localhost:1234/v1").rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.config.get_str('LMSTUDIO_API_KEY', 'lm-studio')}"
        return headers

    def _extra_payload(self, request: CompletionRequest) -> dict[str, Any]:
        extra: dict[str, Any] = {"top_p": 0.95}
        user = self.config.get_str("LMSTUDIO_USER_ID")
        if user:
            extra["user"] = user
        return extra

    def recommend_model(self, signals: ChangeSignals) -> ModelRecommendation:
        # whatever is loaded locally is the only sensible choice
        table = uniform_table(self.configured_model(), "Using configured LM Studio model")
        return table.recommend(signals)

    async def _listed_models(self) -> list[str]:
        data = await self._get_json("/models")
        return [m["id"] for m in data.get("data") or [] if isinstance(m, dict) and m.get("id")]

    async def list_models(self) -> list[str]:
        """Loaded models; older LM Studio builds cannot list, so fall back to the configured one."""
        if not self.is_configured():
            return []
        try:
            return await self._listed_models()
        except AIProviderError as exc:
            self._logger.debug("lmstudio: model listing failed (%s)", exc)
            return [self.configured_model()]

    async def validate_model(self, model_id: str) -> ModelValidation:
        if not self.is_configured():
            return self._not_configured_validation()
        try:
            models = await self._listed_models()
        except AIProviderError:
            return await super().validate_model(model_id)

        if model_id in models:
            return ModelValidation(available=True, capabilities=self.capabilities(model_id))
        return ModelValidation(
            available=False,
            reason="model_not_found",
            error=f"Model not available: {model_id} is not loaded in LM Studio.",
            alternatives=models[:4] or self.suggest_alternatives(model_id),
        )

    async def test_connection(self) -> ConnectionReport:
        report = await super().test_connection()
        if not self.is_configured():
            return report
        if not report.success:
            report.error = (
                f"Failed to connect to LM Studio at {self._base_url()}. Is LM Studio running "
                f"with the API server enabled? Error: {report.error}"
            )
            return report
        report.details["available_models"] = await self.list_models()
        return report

    def connection_details(self, model: str | None = None) -> dict[str, Any]:
        details = super().connection_details(model)
        details["api_version"] = "OpenAI-compatible v1"
        return details

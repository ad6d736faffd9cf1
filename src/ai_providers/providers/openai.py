"""OpenAI chat completions adapter."""

from __future__ import annotations

from ai_providers.capabilities import Capabilities, rule
from ai_providers.errors import AIProviderError
from ai_providers.providers.openai_style import OpenAIStyleAdapter
from ai_providers.selection import SelectionTable, TierChoice, TierThreshold
from ai_providers.types import ModelValidation, Tier

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIAdapter(OpenAIStyleAdapter):
    """Adapter for the hosted OpenAI API (``/v1/chat/completions``)."""

    name = "openai"
    default_model = "gpt-4o"
    timeout_key = "OPENAI_TIMEOUT"
    include_stream_usage = True
    base_capabilities = Capabilities(streaming=True)

    capability_rules = (
        rule("gpt-4o", vision=True, tool_use=True, json_mode=True, reasoning=True,
             large_context=True),
        rule("gpt-4.1", tool_use=True, json_mode=True, large_context=True),
        rule("gpt-4.1", excludes=("nano",), vision=True),
        rule(any_of=("o1", "o3", "o4"), excludes=("gpt",), reasoning=True, tool_use=True,
             large_context=True),
    )

    selection = SelectionTable(
        breaking=TierChoice("gpt-4o", "Complex or breaking change requiring advanced reasoning"),
        thresholds=(
            TierThreshold(
                Tier.LARGE,
                TierChoice("gpt-4o", "Change spans many files"),
                min_files=20,
            ),
            TierThreshold(
                Tier.LARGE,
                TierChoice("gpt-4.1", "Large change requiring standard capabilities"),
                min_lines=1000,
                min_files=10,
            ),
            TierThreshold(
                Tier.MEDIUM,
                TierChoice("gpt-4.1-mini", "Medium-sized change"),
                min_lines=199,
            ),
        ),
        default=TierChoice("gpt-4.1-nano", "Small change, optimized for efficiency"),
    )

    fallbacks = (
        ("gpt-4o", ("gpt-4.1", "gpt-4o-mini", "gpt-4.1-mini")),
        ("gpt-4.1", ("gpt-4o", "gpt-4.1-mini")),
        ("", ("gpt-4o", "gpt-4.1-mini")),
    )

    def is_configured(self) -> bool:
        return self.config.has("OPENAI_API_KEY")

    def required_config(self) -> list[str]:
        return ["OPENAI_API_KEY"]

    def configured_model(self) -> str:
        return self.config.get_str("OPENAI_MODEL") or self.default_model

    def _base_url(self) -> str:
        return (self.config.get_str("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.config.get_str('OPENAI_API_KEY')}"
        organization = self.config.get_str("OPENAI_ORGANIZATION")
        if organization:
            headers["OpenAI-Organization"] = organization
        project = self.config.get_str("OPENAI_PROJECT_ID")
        if project:
            headers["OpenAI-Project"] = project
        return headers

    async def list_models(self) -> list[str]:
        """Model identifiers visible to this API key."""
        data = await self._get_json("/models")
        return [m["id"] for m in data.get("data") or [] if isinstance(m, dict) and m.get("id")]

    async def validate_model(self, model_id: str) -> ModelValidation:
        if not self.is_configured():
            return self._not_configured_validation()
        try:
            models = await self.list_models()
        except AIProviderError as exc:
            return self._unavailable(model_id, exc)

        if any(m == model_id or model_id in m for m in models):
            return ModelValidation(available=True, capabilities=self.capabilities(model_id))
        return ModelValidation(
            available=False,
            reason="model_not_found",
            error=f"Model {model_id} is not available to this API key.",
            alternatives=_similar(model_id, models) or self.suggest_alternatives(model_id),
        )


def _similar(model_id: str, models: list[str]) -> list[str]:
    if "gpt-4o" in model_id:
        return [m for m in models if "gpt-4" in m][:3]
    return models[:3]

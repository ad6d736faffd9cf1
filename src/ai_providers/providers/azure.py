"""Azure OpenAI adapter: chat completions addressed by deployment name."""

from __future__ import annotations

from typing import Any

from ai_providers.capabilities import Capabilities, rule
from ai_providers.providers.openai_style import OpenAIStyleAdapter
from ai_providers.selection import SelectionTable, TierChoice, TierThreshold
from ai_providers.types import CompletionRequest, Tier

DEFAULT_API_VERSION = "2025-04-01-preview"


class AzureOpenAIAdapter(OpenAIStyleAdapter):
    """Azure OpenAI Service.

    The model identifier is the *deployment* name. Authentication uses either
    ``AZURE_OPENAI_KEY`` (``api-key`` header) or, with ``AZURE_USE_AD_AUTH=true``,
    a pre-acquired Entra ID token from ``AZURE_AD_TOKEN``.
    """

    name = "azure"
    timeout_key = "AZURE_TIMEOUT"
    base_capabilities = Capabilities(streaming=True)

    capability_rules = (
        rule(any_of=("o3", "o4"), reasoning=True, tool_use=True, json_mode=True, vision=True,
             large_context=True),
        rule("gpt-4o", vision=True, tool_use=True, json_mode=True, large_context=True),
        rule("gpt-4.1", tool_use=True, json_mode=True),
        rule("gpt-4.1", excludes=("mini", "nano"), vision=True, large_context=True),
    )

    selection = SelectionTable(
        breaking=TierChoice("o4", "Breaking or complex change detected, using o4 model"),
        thresholds=(
            TierThreshold(
                Tier.LARGE,
                TierChoice("o3", "Large and complex commit, using o3 model"),
                min_lines=1000,
                min_files=25,
            ),
            TierThreshold(
                Tier.MEDIUM,
                TierChoice("gpt-4o", "Medium-large commit size"),
                min_lines=500,
                min_files=15,
            ),
            TierThreshold(
                Tier.MEDIUM,
                TierChoice("gpt-4.1", "Medium commit size"),
                min_lines=200,
                min_files=8,
            ),
        ),
        default=TierChoice("gpt-4.1-mini", "Standard commit size"),
    )

    fallbacks = (
        ("o4", ("o3", "gpt-4o", "gpt-4.1")),
        ("o3", ("gpt-4o", "gpt-4.1")),
        ("gpt-4o", ("gpt-4.1", "gpt-4.1-mini")),
        ("", ("gpt-4.1-mini", "gpt-35-turbo")),
    )

    @property
    def uses_ad_auth(self) -> bool:
        return self.config.get_bool("AZURE_USE_AD_AUTH")

    def is_configured(self) -> bool:
        if not self.config.has("AZURE_OPENAI_ENDPOINT"):
            return False
        if self.uses_ad_auth:
            return self.config.has("AZURE_AD_TOKEN")
        return self.config.has("AZURE_OPENAI_KEY")

    def required_config(self) -> list[str]:
        if self.uses_ad_auth:
            return ["AZURE_OPENAI_ENDPOINT", "AZURE_AD_TOKEN"]
        return ["AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_KEY"]

    def configured_model(self) -> str:
        return self.config.get_str("AZURE_OPENAI_DEPLOYMENT_NAME") or ""

    def _base_url(self) -> str:
        return (self.config.get_str("AZURE_OPENAI_ENDPOINT") or "").rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self.uses_ad_auth:
            headers["Authorization"] = f"Bearer {self.config.get_str('AZURE_AD_TOKEN')}"
        else:
            headers["api-key"] = self.config.get_str("AZURE_OPENAI_KEY") or ""
        return headers

    def _chat_path(self, model: str) -> str:
        return f"/openai/deployments/{model}/chat/completions"

    def _chat_params(self) -> dict[str, str]:
        return {"api-version": self.config.get_str("AZURE_API_VERSION") or DEFAULT_API_VERSION}

    def _extra_payload(self, request: CompletionRequest) -> dict[str, Any]:
        user = self.config.get_str("AZURE_USER_ID")
        return {"user": user} if user else {}

    def connection_details(self, model: str | None = None) -> dict[str, Any]:
        details = super().connection_details(model)
        details["auth_type"] = "Azure AD" if self.uses_ad_auth else "API Key"
        details["api_version"] = self._chat_params()["api-version"]
        return details

"""Hugging Face inference adapter (OpenAI-compatible router or a dedicated endpoint)."""

from __future__ import annotations

from typing import Any

from ai_providers.capabilities import Capabilities, rule
from ai_providers.providers.openai_style import OpenAIStyleAdapter
from ai_providers.selection import SelectionTable, TierChoice, TierThreshold
from ai_providers.types import CompletionRequest, Tier

ROUTER_URL = "https://router.huggingface.co/v1"

LLAMA_70B = "meta-llama/Meta-Llama-3.1-70B-Instruct"
LLAMA_8B = "meta-llama/Meta-Llama-3.1-8B-Instruct"
MIXTRAL_8X22B = "mistralai/Mixtral-8x22B-Instruct-v0.1"
MISTRAL_7B = "mistralai/Mistral-7B-Instruct-v0.3"
ZEPHYR_7B = "HuggingFaceH4/zephyr-7b-beta"


class HuggingFaceAdapter(OpenAIStyleAdapter):
    name = "huggingface"
    default_model = MIXTRAL_8X22B
    timeout_key = "HUGGINGFACE_TIMEOUT"
    default_timeout_ms = 120000
    default_max_tokens = 4096
    default_temperature = 0.5
    gate_optional_features = True
    base_capabilities = Capabilities(streaming=True)

    capability_rules = (
        rule("llama-3.1", json_mode=True, tool_use=True),
        rule("llama-3.1", "70b", vision=True, reasoning=True, large_context=True),
        rule("llama-3.1", "8b", large_context=True),
        rule("mixtral", excludes=("llama-3.1",), json_mode=True, large_context=True),
        rule("mixtral", "8x22b", excludes=("llama-3.1",), tool_use=True),
        rule("mistral", excludes=("llama-3.1", "mixtral"), json_mode=True),
        rule("zephyr", excludes=("llama-3.1", "mixtral", "mistral"), json_mode=True),
    )

    selection = SelectionTable(
        breaking=TierChoice(LLAMA_70B, "Complex or breaking change detected"),
        thresholds=(
            TierThreshold(Tier.LARGE, TierChoice(MIXTRAL_8X22B, "Large commit size"), 1000, 25),
            TierThreshold(Tier.MEDIUM, TierChoice(LLAMA_8B, "Medium-large commit size"), 500, 15),
            TierThreshold(Tier.MEDIUM, TierChoice(MISTRAL_7B, "Medium commit size"), 200, 8),
        ),
        default=TierChoice(ZEPHYR_7B, "Standard commit size"),
    )

    fallbacks = (
        ("Llama-3.1-70B", (MIXTRAL_8X22B, LLAMA_8B)),
        ("Mixtral-8x22B", (LLAMA_8B, MISTRAL_7B)),
        ("", (MISTRAL_7B, ZEPHYR_7B)),
    )

    def is_configured(self) -> bool:
        return self.config.has("HUGGINGFACE_API_KEY")

    def required_config(self) -> list[str]:
        return ["HUGGINGFACE_API_KEY"]

    def configured_model(self) -> str:
        return self.config.get_str("HUGGINGFACE_MODEL") or self.default_model

    def _base_url(self) -> str:
        endpoint = self.config.get_str("HUGGINGFACE_ENDPOINT_URL")
        if not endpoint:
            return ROUTER_URL
        endpoint = endpoint.rstrip("/")
        return endpoint if endpoint.endswith("/v1") else f"{endpoint}/v1"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.config.get_str('HUGGINGFACE_API_KEY')}"
        return headers

    def _extra_payload(self, request: CompletionRequest) -> dict[str, Any]:
        extra: dict[str, Any] = {"top_p": 0.95}
        user = self.config.get_str("HUGGINGFACE_USER_ID")
        if user:
            extra["user"] = user
        return extra

    def connection_details(self, model: str | None = None) -> dict[str, Any]:
        details = super().connection_details(model)
        details["endpoint_support"] = self.config.has("HUGGINGFACE_ENDPOINT_URL")
        return details

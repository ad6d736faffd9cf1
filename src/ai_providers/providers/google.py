"""Google AI Studio (Gemini API keyed by ``GOOGLE_API_KEY``)."""

from __future__ import annotations

from ai_providers.providers.gemini_style import GeminiStyleAdapter

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com"
DEFAULT_API_VERSION = "v1beta"


class GoogleAdapter(GeminiStyleAdapter):
    name = "google"
    timeout_key = "GOOGLE_TIMEOUT"

    def is_configured(self) -> bool:
        return self.config.has("GOOGLE_API_KEY")

    def required_config(self) -> list[str]:
        return ["GOOGLE_API_KEY"]

    def configured_model(self) -> str:
        return self.config.get_str("GOOGLE_DEFAULT_MODEL") or self.default_model

    def _base_url(self) -> str:
        return (self.config.get_str("GOOGLE_API_ENDPOINT") or DEFAULT_ENDPOINT).rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["x-goog-api-key"] = self.config.get_str("GOOGLE_API_KEY") or ""
        return headers

    def _model_path(self, model: str, method: str) -> str:
        version = self.config.get_str("GOOGLE_API_VERSION") or DEFAULT_API_VERSION
        return f"/{version}/models/{model}:{method}"

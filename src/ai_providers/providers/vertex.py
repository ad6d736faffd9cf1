"""Vertex AI adapter: Gemini models in a Google Cloud project."""

from __future__ import annotations

import asyncio
from typing import Any

import google.auth
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from ai_providers.capabilities import rule
from ai_providers.config import ProviderConfig
from ai_providers.errors import ConfigurationError, UpstreamError
from ai_providers.providers.gemini_style import (
    DEFAULT_SAFETY_THRESHOLD,
    GEMINI_RULES,
    GeminiStyleAdapter,
)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
DEFAULT_LOCATION = "us-central1"
DEFAULT_API_VERSION = "v1"

_CREDENTIAL_KEYS = (
    "VERTEX_ACCESS_TOKEN",
    "VERTEX_CREDENTIALS",
    "VERTEX_KEY_FILE",
    "GOOGLE_APPLICATION_CREDENTIALS",
)

# harm category -> config key overriding its block threshold
_SAFETY_KEYS = {
    "HARM_CATEGORY_HATE_SPEECH": "VERTEX_SAFETY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT": "VERTEX_SAFETY_DANGEROUS",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT": "VERTEX_SAFETY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_HARASSMENT": "VERTEX_SAFETY_HARASSMENT",
}


class VertexAIAdapter(GeminiStyleAdapter):
    """Gemini on Vertex AI, authenticated with ``google-auth``.

    Credentials are resolved in this order: a static ``VERTEX_ACCESS_TOKEN``,
    inline service-account JSON in ``VERTEX_CREDENTIALS``, a key file from
    ``VERTEX_KEY_FILE`` or ``GOOGLE_APPLICATION_CREDENTIALS``, and finally
    application-default credentials. Token refresh is blocking and runs in a
    worker thread.
    """

    name = "vertex"
    timeout_key = "VERTEX_TIMEOUT"
    default_top_k = 40

    capability_rules = GEMINI_RULES + (
        rule("gemini-2.5", reasoning=True),
        rule("gemini-1.5", "pro", reasoning=True),
        rule("gemini-1.0", json_mode=True),
        rule("gemini-1.0", "pro", vision=True, tool_use=True),
    )

    def __init__(self, config: ProviderConfig, **kwargs: Any) -> None:
        super().__init__(config, **kwargs)
        self._temperature = config.get_float("VERTEX_TEMPERATURE", 0.7)
        self._top_p = config.get_float("VERTEX_TOP_P", self.default_top_p)
        self._top_k = config.get_int("VERTEX_TOP_K", self.default_top_k)
        self._max_tokens = config.get_int("VERTEX_MAX_TOKENS", self.default_max_tokens)

        self._credentials: Credentials | None = None
        self._token_lock = asyncio.Lock()
        info = config.get_json("VERTEX_CREDENTIALS")
        if info is not None:
            if not isinstance(info, dict):
                raise ConfigurationError("VERTEX_CREDENTIALS", "expected a service account JSON object")
            try:
                self._credentials = service_account.Credentials.from_service_account_info(
                    info, scopes=[CLOUD_PLATFORM_SCOPE]
                )
            except ValueError as exc:
                raise ConfigurationError("VERTEX_CREDENTIALS", str(exc)) from exc

    @property
    def project_id(self) -> str:
        return self.config.get_str("VERTEX_PROJECT_ID") or ""

    @property
    def location(self) -> str:
        return self.config.get_str("VERTEX_LOCATION") or DEFAULT_LOCATION

    def is_configured(self) -> bool:
        return self.config.has("VERTEX_PROJECT_ID") and any(
            self.config.has(k) for k in _CREDENTIAL_KEYS
        )

    def required_config(self) -> list[str]:
        return ["VERTEX_PROJECT_ID", "VERTEX_CREDENTIALS"]

    def configured_model(self) -> str:
        return self.config.get_str("VERTEX_MODEL") or self.default_model

    def _base_url(self) -> str:
        endpoint = self.config.get_str("VERTEX_API_ENDPOINT")
        if not endpoint:
            host = (
                "aiplatform.googleapis.com"
                if self.location == "global"
                else f"{self.location}-aiplatform.googleapis.com"
            )
            return f"https://{host}"
        if "://" not in endpoint:
            endpoint = f"https://{endpoint}"
        return endpoint.rstrip("/")

    def _model_path(self, model: str, method: str) -> str:
        version = self.config.get_str("VERTEX_API_VERSION") or DEFAULT_API_VERSION
        return (
            f"/{version}/projects/{self.project_id}/locations/{self.location}/"
            f"publishers/google/models/{model}:{method}"
        )

    def _generation_defaults(self) -> tuple[float, int, float, int]:
        return (self._temperature, self._max_tokens, self._top_p, self._top_k)

    def _safety_settings(self) -> list[dict[str, str]]:
        return [
            {"category": category, "threshold": self.config.get_str(key) or DEFAULT_SAFETY_THRESHOLD}
            for category, key in _SAFETY_KEYS.items()
        ]

    async def _request_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {await self._access_token()}"}

    async def _access_token(self) -> str:
        static_token = self.config.get_str("VERTEX_ACCESS_TOKEN")
        if static_token:
            return static_token

        async with self._token_lock:
            try:
                if self._credentials is None:
                    self._credentials = await asyncio.to_thread(self._load_credentials)
                if not self._credentials.valid:
                    await asyncio.to_thread(self._credentials.refresh, Request())
            except GoogleAuthError as exc:
                raise UpstreamError(self.name, f"Failed to obtain Google credentials: {exc}") from exc
        return self._credentials.token

    def _load_credentials(self) -> Credentials:
        key_file = self.config.get_str("VERTEX_KEY_FILE") or self.config.get_str(
            "GOOGLE_APPLICATION_CREDENTIALS"
        )
        if key_file:
            creds, _ = google.auth.load_credentials_from_file(key_file, scopes=[CLOUD_PLATFORM_SCOPE])
            self._logger.info("vertex: loaded credentials from %s", key_file)
            return creds
        creds, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        self._logger.info("vertex: using application default credentials")
        return creds

    def connection_details(self, model: str | None = None) -> dict[str, Any]:
        details = super().connection_details(model)
        details["project"] = self.project_id
        details["location"] = self.location
        return details

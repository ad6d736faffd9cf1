"""Provider-agnostic base interfaces and helpers."""

from __future__ import annotations

import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any, ClassVar

import httpx

from ai_providers.cancellation import CancellationToken
from ai_providers.capabilities import Capabilities, CapabilityRule, derive_capabilities
from ai_providers.config import ProviderConfig
from ai_providers.errors import (
    AIProviderError,
    ModelNotFoundError,
    NotConfiguredError,
    UpstreamError,
    classify_failure,
    is_not_found_message,
)
from ai_providers.retry import DEFAULT_RETRY_POLICY, RetryPolicy, call_with_retry
from ai_providers.selection import SelectionTable
from ai_providers.streaming import ProgressCallback, ProgressRelay, check
from ai_providers.types import (
    ChangeSignals,
    CompletionRequest,
    CompletionResponse,
    ConnectionReport,
    Message,
    ModelRecommendation,
    ModelValidation,
)

# (substring of the requested model, ordered alternatives); "" is the catch-all
FallbackTable = tuple[tuple[str, tuple[str, ...]], ...]

_MODEL_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:/@+-]*$")

PROBE_MESSAGES = (Message(role="user", content="Test connection"),)


class ProviderAdapter(ABC):
    """Abstract base class for backend adapters.

    Subclasses describe their backend through class-level tables (capability
    rules, model selection, fallbacks) and implement :meth:`_complete`, the
    single vendor round trip. :meth:`complete` wraps it with the shared
    policy: configuration check, model resolution, rate-limit backoff and one
    fallback attempt when the model is unknown.
    """

    name: ClassVar[str]
    default_model: ClassVar[str] = ""
    base_capabilities: ClassVar[Capabilities] = Capabilities()
    capability_rules: ClassVar[tuple[CapabilityRule, ...]] = ()
    selection: ClassVar[SelectionTable]
    fallbacks: ClassVar[FallbackTable] = ()
    timeout_key: ClassVar[str | None] = None
    default_timeout_ms: ClassVar[int] = 60000
    connection_fallback_model: ClassVar[str | None] = None

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.config = config
        self.retry_policy = retry_policy or DEFAULT_RETRY_POLICY
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, configured={self.is_configured()})"

    # -- configuration -----------------------------------------------------

    @abstractmethod
    def is_configured(self) -> bool:
        """True when the minimum credentials/endpoint are present."""
        raise NotImplementedError

    @abstractmethod
    def required_config(self) -> list[str]:
        """Configuration keys this backend needs."""
        raise NotImplementedError

    def configured_model(self) -> str:
        """Model used when a request does not name one."""
        return self.default_model

    # -- HTTP plumbing -------------------------------------------------------

    @abstractmethod
    def _base_url(self) -> str:
        raise NotImplementedError

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _request_headers(self) -> dict[str, str]:
        """Per-request headers, e.g. short-lived bearer tokens."""
        return {}

    def _timeout(self) -> float:
        if self.timeout_key is None:
            return self.default_timeout_ms / 1000.0
        return self.config.timeout_s(self.timeout_key, self.default_timeout_ms)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url(),
                headers=self._headers(),
                timeout=self._timeout(),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post_json(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        model: str | None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        headers = await self._request_headers()
        try:
            response = await self._http().post(path, json=payload, params=params, headers=headers)
        except httpx.TransportError as exc:
            raise UpstreamError(self.name, str(exc) or type(exc).__name__) from exc
        return self._json_or_error(response, model)

    async def _get_json(
        self,
        path: str,
        *,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        headers = await self._request_headers()
        try:
            response = await self._http().get(path, params=params, headers=headers)
        except httpx.TransportError as exc:
            raise UpstreamError(self.name, str(exc) or type(exc).__name__) from exc
        return self._json_or_error(response, None)

    @asynccontextmanager
    async def _stream(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        model: str,
        params: dict[str, str] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming POST; leaving the block closes the response."""
        check(cancel_token)
        headers = await self._request_headers()
        try:
            async with self._http().stream(
                "POST", path, json=payload, params=params, headers=headers
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise self._failure(
                        response.status_code,
                        body.decode(errors="replace") or response.reason_phrase,
                        model,
                        response.headers,
                    )
                yield response
        except httpx.TransportError as exc:
            raise UpstreamError(self.name, str(exc) or type(exc).__name__) from exc

    def _json_or_error(self, response: httpx.Response, model: str | None) -> dict[str, Any]:
        if response.status_code >= 400:
            raise self._failure(
                response.status_code,
                response.text or response.reason_phrase,
                model,
                response.headers,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(self.name, f"Invalid JSON response: {response.text[:200]}") from exc
        if not isinstance(data, dict):
            raise UpstreamError(self.name, f"Unexpected response payload: {type(data).__name__}")
        return data

    def _failure(
        self,
        status_code: int | None,
        message: str,
        model: str | None,
        headers: httpx.Headers | None = None,
    ) -> AIProviderError:
        retry_after = None
        if headers is not None and headers.get("retry-after"):
            try:
                retry_after = float(headers["retry-after"])
            except ValueError:
                retry_after = None
        return classify_failure(
            self.name,
            message,
            status_code=status_code,
            model=model,
            alternatives=self.suggest_alternatives(model) if model else (),
            retry_after=retry_after,
        )

    def _event_error(self, event: dict[str, Any], model: str) -> AIProviderError | None:
        """Error carried inside a stream event, if any.

        OpenAI-style servers send ``{"error": {"message", "type", "code"}}``;
        Gemini sends ``{"error": {"code", "message", "status"}}``.
        """
        error = event.get("error")
        if not error:
            return None
        if not isinstance(error, dict):
            return self._failure(None, str(error), model)
        message = str(error.get("message") or json.dumps(error))
        kind = error.get("status") or error.get("type")
        if isinstance(error.get("code"), str):
            kind = error["code"]
        if kind:
            message = f"{kind}: {message}"
        code = error.get("code")
        status_code = code if isinstance(code, int) else None
        return self._failure(status_code, message, model)

    # -- uniform contract ----------------------------------------------------

    def capabilities(self, model_id: str | None = None) -> Capabilities:
        """Derive the capability descriptor for ``model_id`` (or the default)."""
        return derive_capabilities(
            model_id or self.configured_model(),
            self.capability_rules,
            self.base_capabilities,
        )

    def recommend_model(self, signals: ChangeSignals) -> ModelRecommendation:
        return self.selection.recommend(signals)

    def suggest_alternatives(self, model_id: str) -> list[str]:
        """Static fallback suggestions keyed by substrings of ``model_id``."""
        lowered = model_id.lower()
        for marker, alternatives in self.fallbacks:
            if marker.lower() in lowered:
                return [m for m in alternatives if m != model_id]
        return []

    def resolve_model(self, request: CompletionRequest) -> str:
        model = (request.model or self.configured_model() or "").strip()
        if not model or not _MODEL_ID.match(model):
            raise ModelNotFoundError(
                self.name,
                model or "<unset>",
                self.suggest_alternatives(model),
                message=f"Model identifier {model!r} is not usable.",
            )
        return model

    async def complete(
        self,
        request: CompletionRequest,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> CompletionResponse:
        """Run a normalized completion against this backend.

        Rate-limit retries and the model fallback only happen while no
        fragment has been delivered to ``on_progress``; after that the
        failure propagates.
        """
        if not self.is_configured():
            raise NotConfiguredError(self.name)
        relay = ProgressRelay(on_progress) if on_progress is not None else None
        try:
            model = self.resolve_model(request)
            return await self._complete_with_backoff(request, model, relay, cancel_token)
        except ModelNotFoundError as exc:
            fallback = next((m for m in exc.alternatives if m != exc.model), None)
            if fallback is None or (relay is not None and relay.started):
                raise
            self._logger.warning(
                "%s: model %s not found, trying fallback model %s", self.name, exc.model, fallback
            )
            return await self._complete_with_backoff(request, fallback, relay, cancel_token)

    async def _complete_with_backoff(
        self,
        request: CompletionRequest,
        model: str,
        relay: ProgressRelay | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResponse:
        return await call_with_retry(
            lambda: self._complete(request, model, relay, cancel_token),
            self.retry_policy,
            label=f"{self.name}:{model}",
            retry_if=lambda exc: relay is None or not relay.started,
        )

    @abstractmethod
    async def _complete(
        self,
        request: CompletionRequest,
        model: str,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResponse:
        """One vendor round trip for ``model`` (no retries, no fallback)."""
        raise NotImplementedError

    async def _probe(self, model: str, max_tokens: int = 1) -> CompletionResponse:
        request = CompletionRequest(
            messages=list(PROBE_MESSAGES), model=model, max_tokens=max_tokens, temperature=0
        )
        return await self._complete(request, model, None, None)

    async def validate_model(self, model_id: str) -> ModelValidation:
        """Probe ``model_id`` with the smallest possible completion."""
        if not self.is_configured():
            return self._not_configured_validation()
        try:
            await self._probe(model_id)
        except AIProviderError as exc:
            return self._unavailable(model_id, exc)
        return ModelValidation(available=True, capabilities=self.capabilities(model_id))

    def _not_configured_validation(self) -> ModelValidation:
        return ModelValidation(
            available=False,
            reason="not_configured",
            error=f"{self.name} provider is not configured.",
        )

    def _unavailable(self, model_id: str, exc: AIProviderError) -> ModelValidation:
        not_found = isinstance(exc, ModelNotFoundError) or is_not_found_message(str(exc))
        return ModelValidation(
            available=False,
            reason="model_not_found" if not_found else "api_error",
            error=str(exc),
            alternatives=self.suggest_alternatives(model_id),
        )

    async def test_connection(self) -> ConnectionReport:
        """Send one minimal completion and report what happened.

        When the default model is unknown and the class names a
        ``connection_fallback_model``, that model is tried once and the report
        carries a warning.
        """
        if not self.is_configured():
            return ConnectionReport(
                success=False,
                provider=self.name,
                error=f"{self.name} provider is not configured.",
            )
        model = self.configured_model()
        if not model:
            return ConnectionReport(
                success=False,
                provider=self.name,
                error=f"No default model configured for {self.name}.",
            )

        warning = None
        try:
            try:
                response = await self._probe(model, max_tokens=10)
            except ModelNotFoundError as exc:
                fallback = self.connection_fallback_model
                if fallback is None or fallback == model:
                    raise
                self._logger.warning(
                    "%s: default model %s not available, trying %s", self.name, model, fallback
                )
                try:
                    response = await self._probe(fallback, max_tokens=10)
                except AIProviderError:
                    raise UpstreamError(
                        self.name, f"Failed to connect with default and fallback models: {exc}"
                    ) from exc
                warning = f"Default model {model} not available, used {fallback} instead"
        except AIProviderError as exc:
            return ConnectionReport(
                success=False,
                provider=self.name,
                model=model,
                error=str(exc),
                details=self.connection_details(model),
            )
        return ConnectionReport(
            success=True,
            provider=self.name,
            model=response.model,
            response=response.content,
            warning=warning,
            details=self.connection_details(response.model),
        )

    def connection_details(self, model: str | None = None) -> dict[str, Any]:
        return {"features": self.capabilities(model).enabled()}


def split_system(messages: Sequence[Message]) -> tuple[str | None, list[Message]]:
    """Separate the first system message from the conversation.

    Later system messages are dropped.
    """
    system: str | None = None
    rest: list[Message] = []
    for message in messages:
        if message.role != "system":
            rest.append(message)
        elif system is None:
            system = message.text()
        else:
            ProviderAdapter._logger.debug("Dropping additional system message")
    return system, rest


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def encode_arguments(arguments: Any) -> str:
    """Tool-call arguments as a JSON string, whatever the vendor sent."""
    if arguments is None:
        return "{}"
    if isinstance(arguments, str):
        return arguments or "{}"
    return json.dumps(arguments)


def pick(value: Any, default: Any) -> Any:
    """``value`` unless it is ``None``; keeps explicit zeros."""
    return default if value is None else value

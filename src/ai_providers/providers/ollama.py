"""Ollama local runtime adapter (native ``/api`` endpoints)."""

from __future__ import annotations

from typing import Any

from ai_providers.cancellation import CancellationToken
from ai_providers.capabilities import Capabilities, rule
from ai_providers.config import ProviderConfig
from ai_providers.errors import (
    AIProviderError,
    ConfigurationError,
    NotConfiguredError,
    UnsupportedFeatureError,
)
from ai_providers.providers.base import (
    ProviderAdapter,
    encode_arguments,
    new_call_id,
    pick,
    split_system,
)
from ai_providers.selection import uniform_table
from ai_providers.streaming import ProgressCallback, check, emit, iter_ndjson
from ai_providers.types import (
    ChangeSignals,
    CompletionRequest,
    CompletionResponse,
    ConnectionReport,
    EmbeddingResponse,
    Message,
    ModelRecommendation,
    ModelValidation,
    StreamChunk,
    TextPart,
    ToolCall,
    ToolSpec,
)

DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"


class OllamaAdapter(ProviderAdapter):
    """Models served by a local (or LAN) Ollama daemon."""

    name = "ollama"
    default_model = "llama3"
    timeout_key = "OLLAMA_TIMEOUT"
    default_timeout_ms = 120000
    base_capabilities = Capabilities(streaming=True, local=True)

    capability_rules = (
        rule("llama3", json_mode=True, tool_use=True),
        rule("codellama", excludes=("llama3",), json_mode=True, tool_use=True),
        rule("mistral", excludes=("llama3", "codellama"), json_mode=True),
        rule(any_of=("vision", "llava"), vision=True),
    )

    fallbacks = (("", ("llama3", "mistral", "codellama", "llama2")),)

    def __init__(self, config: ProviderConfig, **kwargs: Any) -> None:
        super().__init__(config, **kwargs)
        self._extra_headers: dict[str, str] = {}
        try:
            headers = config.get_json("OLLAMA_HEADERS")
        except ConfigurationError as exc:
            self._logger.warning("ollama: %s, using default headers", exc)
            headers = None
        if isinstance(headers, dict):
            self._extra_headers = {str(k): str(v) for k, v in headers.items()}

    def is_configured(self) -> bool:
        return self.config.has("OLLAMA_HOST")

    def required_config(self) -> list[str]:
        return ["OLLAMA_HOST"]

    def configured_model(self) -> str:
        return self.config.get_str("OLLAMA_MODEL") or self.default_model

    def _base_url(self) -> str:
        host = self.config.get_str("OLLAMA_HOST") or "http://localhost:11434"
        if "://" not in host:
            host = f"http://{host}"
        return host.rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers.update(self._extra_headers)
        return headers

    def _keep_alive(self) -> str | int | None:
        value = self.config.get_str("OLLAMA_KEEP_ALIVE")
        if value is None:
            return None
        # "false" unloads the model right after the request
        return 0 if value.lower() == "false" else value

    def recommend_model(self, signals: ChangeSignals) -> ModelRecommendation:
        table = uniform_table(self.configured_model(), "Using configured or default Ollama model")
        return table.recommend(signals)

    # -- chat ----------------------------------------------------------------

    async def _complete(
        self,
        request: CompletionRequest,
        model: str,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResponse:
        payload = self._build_payload(request, model)
        if request.stream:
            return await self._complete_stream(payload, model, on_progress, cancel_token)

        check(cancel_token)
        data = await self._post_json("/api/chat", payload, model=model)
        message = data.get("message") or {}
        return CompletionResponse(
            content=message.get("content") or "",
            model=model,
            provider=self.name,
            tokens_used=_token_count(data),
            finish_reason=_finish_reason(data),
            tool_calls=self._parse_tool_calls(message.get("tool_calls")),
            raw=data,
        )

    def _build_payload(self, request: CompletionRequest, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": self._serialize_messages(request.messages),
            "stream": request.stream,
            "options": {
                "temperature": pick(request.temperature, 0.7),
                "top_p": 0.9,
                "num_predict": pick(request.max_tokens, 1024),
            },
        }

        keep_alive = self._keep_alive()
        if keep_alive is not None:
            payload["keep_alive"] = keep_alive

        caps = self.capabilities(model)
        if request.tools:
            if caps.tool_use:
                payload["tools"] = self._serialize_tools(request.tools)
            else:
                self._logger.debug("ollama: %s does not support tools, dropping them", model)
        if request.wants_json:
            if caps.json_mode:
                payload["format"] = "json"
            else:
                self._logger.debug("ollama: %s has no JSON mode, ignoring response_format", model)
        return payload

    @classmethod
    def _serialize_messages(cls, messages: list[Message]) -> list[dict[str, Any]]:
        system, rest = split_system(messages)
        serialized = [{"role": "system", "content": system}] if system is not None else []
        serialized.extend(cls._serialize_message(m) for m in rest)
        return serialized

    @staticmethod
    def _serialize_message(message: Message) -> dict[str, Any]:
        texts: list[str] = []
        images: list[str] = []
        for part in message.parts():
            if isinstance(part, TextPart):
                texts.append(part.text)
            elif part.is_inline:
                images.append(part.inline_data()[1])
            else:
                raise UnsupportedFeatureError("remote image URLs (use data: URLs with Ollama)")

        serialized: dict[str, Any] = {"role": message.role, "content": "\n".join(texts)}
        if images:
            serialized["images"] = images
        return serialized

    @staticmethod
    def _serialize_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description or "",
                    "parameters": t.parameters,
                },
            }
            for t in tools
        ]

    @staticmethod
    def _parse_tool_calls(raw_calls: Any) -> list[ToolCall] | None:
        if not raw_calls:
            return None
        calls = []
        for call in raw_calls:
            function = call.get("function") or {}
            calls.append(
                ToolCall(
                    id=call.get("id") or new_call_id(),
                    name=function.get("name", ""),
                    arguments=encode_arguments(function.get("arguments")),
                )
            )
        return calls

    async def _complete_stream(
        self,
        payload: dict[str, Any],
        model: str,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResponse:
        fragments: list[str] = []
        calls: list[ToolCall] = []
        last_event: dict[str, Any] = {}

        async with self._stream("/api/chat", payload, model=model, cancel_token=cancel_token) as response:
            async for event in iter_ndjson(response, cancel_token):
                if event.get("error"):
                    raise self._failure(None, str(event["error"]), model)
                last_event = event
                message = event.get("message") or {}
                chunk = message.get("content")
                if chunk:
                    fragments.append(chunk)
                    await emit(on_progress, StreamChunk(content=chunk, model=model))
                calls.extend(self._parse_tool_calls(message.get("tool_calls")) or [])
                if event.get("done"):
                    break

        content = "".join(fragments)
        finish_reason = _finish_reason(last_event)
        await emit(
            on_progress,
            StreamChunk(content=content, model=model, done=True, finish_reason=finish_reason),
        )
        return CompletionResponse(
            content=content,
            model=model,
            provider=self.name,
            tokens_used=_token_count(last_event),
            finish_reason=finish_reason,
            tool_calls=calls or None,
            raw=last_event,
        )

    # -- model management ------------------------------------------------------

    async def _tags(self) -> list[dict[str, Any]]:
        data = await self._get_json("/api/tags")
        return [m for m in data.get("models") or [] if isinstance(m, dict) and m.get("name")]

    async def list_models(self) -> list[str]:
        """Names of the models pulled into the local Ollama store."""
        return [m["name"] for m in await self._tags()]

    async def validate_model(self, model_id: str) -> ModelValidation:
        if not self.is_configured():
            return self._not_configured_validation()
        try:
            models = await self._tags()
        except AIProviderError as exc:
            return ModelValidation(
                available=False,
                reason="api_error",
                error=f"Could not connect to Ollama host: {exc}",
                alternatives=self.suggest_alternatives(model_id),
            )

        found = next(
            (m for m in models if m["name"] == model_id or m["name"].startswith(f"{model_id}:")),
            None,
        )
        if found is None:
            return ModelValidation(
                available=False,
                reason="model_not_found",
                error=f"Model {model_id} is not available locally",
                alternatives=[m["name"] for m in models][:5] or self.suggest_alternatives(model_id),
            )
        return ModelValidation(
            available=True,
            capabilities=self.capabilities(model_id),
            details={
                "name": found["name"],
                "size": found.get("size"),
                "modified_at": found.get("modified_at"),
                "quantization": (found.get("details") or {}).get("quantization_level", "unknown"),
            },
        )

    async def generate_embedding(self, text: str, *, model: str | None = None) -> EmbeddingResponse:
        """Embed ``text`` with ``model`` or ``OLLAMA_EMBEDDING_MODEL``."""
        if not self.is_configured():
            raise NotConfiguredError(self.name)
        model_name = model or self.config.get_str("OLLAMA_EMBEDDING_MODEL") or DEFAULT_EMBEDDING_MODEL
        data = await self._post_json(
            "/api/embeddings", {"model": model_name, "prompt": text}, model=model_name
        )
        return EmbeddingResponse(
            embedding=data.get("embedding") or [], model=model_name, provider=self.name
        )

    async def pull_model(self, model_name: str) -> str:
        """Download ``model_name`` into the local store; returns Ollama's final status."""
        if not self.is_configured():
            raise NotConfiguredError(self.name)
        self._logger.info("ollama: pulling model %s", model_name)
        data = await self._post_json(
            "/api/pull", {"model": model_name, "stream": False}, model=None
        )
        return str(data.get("status", ""))

    async def test_connection(self) -> ConnectionReport:
        if not self.is_configured():
            return await super().test_connection()
        try:
            available = await self.list_models()
            model = self.config.get_str("OLLAMA_MODEL") or (
                available[0] if available else self.default_model
            )
            response = await self._probe(model, max_tokens=10)
        except AIProviderError as exc:
            return ConnectionReport(
                success=False,
                provider=self.name,
                error=f"Failed to connect to Ollama at {self._base_url()}. Is Ollama running? Error: {exc}",
            )

        details = self.connection_details(response.model)
        details["available_models"] = available[:5]
        return ConnectionReport(
            success=True,
            provider=self.name,
            model=response.model,
            response=response.content,
            details=details,
        )


def _token_count(data: dict[str, Any]) -> int | None:
    counts = [data.get("prompt_eval_count"), data.get("eval_count")]
    if all(c is None for c in counts):
        return None
    return sum(c or 0 for c in counts)


def _finish_reason(data: dict[str, Any]) -> str | None:
    if data.get("done_reason"):
        return data["done_reason"]
    return "stop" if data.get("done") else None

"""Shared Gemini ``generateContent`` translation for Google AI Studio and Vertex AI."""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, ClassVar

from ai_providers.cancellation import CancellationToken
from ai_providers.capabilities import Capabilities, rule
from ai_providers.errors import UpstreamError
from ai_providers.providers.base import (
    ProviderAdapter,
    encode_arguments,
    new_call_id,
    pick,
    split_system,
)
from ai_providers.selection import SelectionTable, TierChoice, TierThreshold
from ai_providers.streaming import ProgressCallback, check, emit, iter_sse_events
from ai_providers.types import (
    CompletionRequest,
    CompletionResponse,
    Message,
    StreamChunk,
    TextPart,
    Tier,
    ToolCall,
    ToolSpec,
)

HARM_CATEGORIES = (
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
)
DEFAULT_SAFETY_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"

GEMINI_RULES = (
    rule("gemini-2.5", vision=True, tool_use=True, json_mode=True),
    rule("gemini-2.5", any_of=("pro", "flash"), large_context=True),
    rule("gemini-2.5", "pro", reasoning=True),
    rule("gemini-2.0", tool_use=True, json_mode=True),
    rule("gemini-2.0", any_of=("pro", "flash"), vision=True),
    rule("gemini-2.0", "pro", large_context=True, reasoning=True),
    rule("gemini-1.5", vision=True, tool_use=True, json_mode=True),
    rule("gemini-1.5", "pro", large_context=True),
)

GEMINI_SELECTION = SelectionTable(
    breaking=TierChoice("gemini-2.5-pro", "Complex or breaking change detected"),
    thresholds=(
        TierThreshold(Tier.LARGE, TierChoice("gemini-2.5-pro", "Large commit size"), 1500, 30),
        TierThreshold(Tier.MEDIUM, TierChoice("gemini-2.5-flash", "Medium-large commit size"), 800, 20),
        TierThreshold(Tier.MEDIUM, TierChoice("gemini-2.0-flash", "Medium commit size"), 300, 10),
    ),
    default=TierChoice("gemini-2.0-flash-lite", "Standard commit size"),
)

GEMINI_FALLBACKS = (
    ("gemini-2.5-pro", ("gemini-2.5-flash", "gemini-2.0-flash")),
    ("gemini-2.5-flash", ("gemini-2.0-flash", "gemini-1.5-flash")),
    ("gemini-2.0-pro", ("gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash")),
    ("gemini-2.0-flash", ("gemini-1.5-flash", "gemini-1.5-pro")),
    ("gemini-1.5-pro", ("gemini-1.5-flash", "gemini-1.0-pro")),
    ("", ("gemini-2.5-flash", "gemini-2.0-flash", "gemini-1.5-flash")),
)

_TOOL_MODES = {"auto": "AUTO", "required": "ANY", "none": "NONE"}


class GeminiStyleAdapter(ProviderAdapter):
    """Base for backends serving Gemini models over ``generateContent``.

    Subclasses provide the model path and authentication. Generation settings
    and safety settings that do not depend on the conversation are prepared
    once per (model, temperature, max_tokens, json) combination and kept in
    an append-only cache on the adapter.
    """

    default_model = "gemini-2.5-flash"
    default_max_tokens: ClassVar[int] = 8192
    default_temperature: ClassVar[float] = 0.4
    default_top_p: ClassVar[float] = 0.95
    default_top_k: ClassVar[int] = 64
    base_capabilities = Capabilities(streaming=True)
    capability_rules = GEMINI_RULES
    selection = GEMINI_SELECTION
    fallbacks = GEMINI_FALLBACKS
    connection_fallback_model = "gemini-1.5-flash"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._templates: dict[tuple[str, float, int, bool], dict[str, Any]] = {}

    @abstractmethod
    def _model_path(self, model: str, method: str) -> str:
        """Path of ``method`` (e.g. ``generateContent``) for ``model``."""
        raise NotImplementedError

    def _generation_defaults(self) -> tuple[float, int, float, int]:
        """``(temperature, max_tokens, top_p, top_k)`` used when a request leaves them unset."""
        return (self.default_temperature, self.default_max_tokens, self.default_top_p, self.default_top_k)

    def _safety_settings(self) -> list[dict[str, str]]:
        return [{"category": c, "threshold": DEFAULT_SAFETY_THRESHOLD} for c in HARM_CATEGORIES]

    def _template(self, model: str, request: CompletionRequest) -> dict[str, Any]:
        temperature, max_tokens, top_p, top_k = self._generation_defaults()
        key = (
            model,
            float(pick(request.temperature, temperature)),
            int(pick(request.max_tokens, max_tokens)),
            request.wants_json,
        )
        template = self._templates.get(key)
        if template is None:
            generation: dict[str, Any] = {
                "temperature": key[1],
                "maxOutputTokens": key[2],
                "topP": top_p,
                "topK": top_k,
                "candidateCount": 1,
            }
            if key[3]:
                generation["responseMimeType"] = "application/json"
            template = {"generationConfig": generation, "safetySettings": self._safety_settings()}
            self._templates[key] = template
        return template

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
        data = await self._post_json(self._model_path(model, "generateContent"), payload, model=model)
        text, calls, finish_reason = self._parse_candidate(data)
        return CompletionResponse(
            content=text,
            model=model,
            provider=self.name,
            tokens_used=_total_tokens(data),
            finish_reason=finish_reason,
            tool_calls=calls or None,
            raw=data,
        )

    def _build_payload(self, request: CompletionRequest, model: str) -> dict[str, Any]:
        system_text, msgs = split_system(request.messages)
        payload: dict[str, Any] = {"contents": [self._serialize_message(m) for m in msgs]}
        payload.update(self._template(model, request))

        if system_text:
            payload["systemInstruction"] = {"parts": [{"text": system_text}]}

        if request.tools:
            if self.capabilities(model).tool_use:
                payload.update(self._serialize_tools(request.tools, request.tool_choice))
            else:
                self._logger.debug("%s: %s does not support tools, dropping them", self.name, model)
        return payload

    @staticmethod
    def _serialize_message(message: Message) -> dict[str, Any]:
        parts: list[dict[str, Any]] = []
        for part in message.parts():
            if isinstance(part, TextPart):
                parts.append({"text": part.text})
            elif part.is_inline:
                mime, data = part.inline_data()
                parts.append({"inlineData": {"mimeType": mime, "data": data}})
            else:
                parts.append(
                    {"fileData": {"mimeType": part.mime_type or "image/jpeg", "fileUri": part.url}}
                )
        return {"role": "model" if message.role == "assistant" else "user", "parts": parts}

    @staticmethod
    def _serialize_tools(tools: list[ToolSpec], tool_choice: str) -> dict[str, Any]:
        declarations = [
            {"name": t.name, "description": t.description or "", "parameters": t.parameters}
            for t in tools
        ]
        if tool_choice in _TOOL_MODES:
            calling: dict[str, Any] = {"mode": _TOOL_MODES[tool_choice]}
        else:
            calling = {"mode": "ANY", "allowedFunctionNames": [tool_choice]}
        return {
            "tools": [{"functionDeclarations": declarations}],
            "toolConfig": {"functionCallingConfig": calling},
        }

    def _parse_candidate(self, data: dict[str, Any]) -> tuple[str, list[ToolCall], str | None]:
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise UpstreamError(self.name, f"Prompt blocked: {block_reason}")
            return "", [], None

        candidate = candidates[0]
        texts: list[str] = []
        calls: list[ToolCall] = []
        for part in (candidate.get("content") or {}).get("parts") or []:
            if "text" in part and not part.get("thought"):
                texts.append(part["text"])
            elif "functionCall" in part:
                call = part["functionCall"]
                calls.append(
                    ToolCall(
                        id=new_call_id(),
                        name=call.get("name", ""),
                        arguments=encode_arguments(call.get("args")),
                    )
                )

        finish_reason = candidate.get("finishReason")
        if calls:
            finish_reason = "tool_calls"
        elif finish_reason:
            finish_reason = finish_reason.lower()
        return "".join(texts), calls, finish_reason

    async def _complete_stream(
        self,
        payload: dict[str, Any],
        model: str,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResponse:
        fragments: list[str] = []
        calls: list[ToolCall] = []
        finish_reason: str | None = None
        tokens: int | None = None
        last_event: dict[str, Any] = {}

        async with self._stream(
            self._model_path(model, "streamGenerateContent"),
            payload,
            model=model,
            params={"alt": "sse"},
            cancel_token=cancel_token,
        ) as response:
            async for event in iter_sse_events(response, cancel_token):
                last_event = event
                failure = self._event_error(event, model)
                if failure is not None:
                    raise failure
                text, event_calls, reason = self._parse_candidate(event)
                if text:
                    fragments.append(text)
                    await emit(on_progress, StreamChunk(content=text, model=model))
                calls.extend(event_calls)
                finish_reason = reason or finish_reason
                # usage metadata is cumulative; the last one wins
                tokens = _total_tokens(event) or tokens

        if calls:
            finish_reason = "tool_calls"
        content = "".join(fragments)
        await emit(
            on_progress,
            StreamChunk(content=content, model=model, done=True, finish_reason=finish_reason),
        )
        return CompletionResponse(
            content=content,
            model=model,
            provider=self.name,
            tokens_used=tokens,
            finish_reason=finish_reason,
            tool_calls=calls or None,
            raw=last_event,
        )


def _total_tokens(data: dict[str, Any]) -> int | None:
    usage = data.get("usageMetadata") or {}
    return usage.get("totalTokenCount")

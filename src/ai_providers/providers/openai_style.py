"""Shared translation for backends speaking the Chat Completions dialect."""

from __future__ import annotations

from typing import Any, ClassVar

from ai_providers.cancellation import CancellationToken
from ai_providers.providers.base import (
    ProviderAdapter,
    encode_arguments,
    new_call_id,
    pick,
    split_system,
)
from ai_providers.streaming import ProgressCallback, check, emit, iter_sse_events
from ai_providers.types import (
    CompletionRequest,
    CompletionResponse,
    Message,
    StreamChunk,
    TextPart,
    ToolCall,
    ToolSpec,
)


class OpenAIStyleAdapter(ProviderAdapter):
    """Base for OpenAI, Azure OpenAI, LM Studio and Hugging Face."""

    chat_path: ClassVar[str] = "/chat/completions"
    default_max_tokens: ClassVar[int] = 1000
    default_temperature: ClassVar[float] = 0.3
    # only forward tools / JSON mode when the model's capabilities allow it
    gate_optional_features: ClassVar[bool] = False
    include_stream_usage: ClassVar[bool] = False

    def _chat_path(self, model: str) -> str:
        return self.chat_path

    def _chat_params(self) -> dict[str, str] | None:
        return None

    def _extra_payload(self, request: CompletionRequest) -> dict[str, Any]:
        return {}

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
        data = await self._post_json(
            self._chat_path(model), payload, model=model, params=self._chat_params()
        )
        return self._parse_completion(data, model)

    def _build_payload(self, request: CompletionRequest, model: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": self._serialize_messages(request.messages),
            "max_tokens": pick(request.max_tokens, self.default_max_tokens),
            "temperature": pick(request.temperature, self.default_temperature),
        }
        payload.update(self._extra_payload(request))

        caps = self.capabilities(model)
        if request.tools:
            if self.gate_optional_features and not caps.tool_use:
                self._logger.debug("%s: %s does not support tools, dropping them", self.name, model)
            else:
                payload.update(self._serialize_tools(request.tools, request.tool_choice))

        if request.wants_json:
            if self.gate_optional_features and not caps.json_mode:
                self._logger.debug("%s: %s has no JSON mode, ignoring response_format", self.name, model)
            else:
                payload["response_format"] = {"type": "json_object"}
        return payload

    @classmethod
    def _serialize_messages(cls, messages: list[Message]) -> list[dict[str, Any]]:
        system, rest = split_system(messages)
        serialized = [{"role": "system", "content": system}] if system is not None else []
        serialized.extend(cls._serialize_message(m) for m in rest)
        return serialized

    @staticmethod
    def _serialize_message(message: Message) -> dict[str, Any]:
        if isinstance(message.content, str):
            return {"role": message.role, "content": message.content}
        content: list[dict[str, Any]] = []
        for part in message.content:
            if isinstance(part, TextPart):
                content.append({"type": "text", "text": part.text})
            else:
                content.append({"type": "image_url", "image_url": {"url": part.url}})
        return {"role": message.role, "content": content}

    @staticmethod
    def _serialize_tools(tools: list[ToolSpec], tool_choice: str) -> dict[str, Any]:
        tool_payload = [
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

        payload: dict[str, Any] = {"tools": tool_payload}
        if tool_choice in ("auto", "none", "required"):
            payload["tool_choice"] = tool_choice
        else:
            payload["tool_choice"] = {"type": "function", "function": {"name": tool_choice}}
        return payload

    def _parse_completion(self, data: dict[str, Any], model: str) -> CompletionResponse:
        choices = data.get("choices") or []
        choice = choices[0] if choices else {}
        message = choice.get("message") or {}
        usage = data.get("usage") or {}

        return CompletionResponse(
            content=_text_of(message.get("content")),
            model=model,
            provider=self.name,
            tokens_used=usage.get("total_tokens"),
            finish_reason=choice.get("finish_reason"),
            tool_calls=self._parse_tool_calls(message.get("tool_calls")),
            raw=data,
        )

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
        payload = {**payload, "stream": True}
        if self.include_stream_usage:
            payload["stream_options"] = {"include_usage": True}

        fragments: list[str] = []
        pending_calls: dict[int, dict[str, str]] = {}
        finish_reason: str | None = None
        tokens: int | None = None
        last_event: dict[str, Any] = {}

        async with self._stream(
            self._chat_path(model),
            payload,
            model=model,
            params=self._chat_params(),
            cancel_token=cancel_token,
        ) as response:
            async for event in iter_sse_events(response, cancel_token):
                last_event = event
                failure = self._event_error(event, model)
                if failure is not None:
                    raise failure
                usage = event.get("usage")
                if isinstance(usage, dict) and usage.get("total_tokens") is not None:
                    tokens = usage["total_tokens"]

                choices = event.get("choices") or []
                if not choices:
                    continue
                choice = choices[0]
                delta = choice.get("delta") or {}

                chunk = delta.get("content")
                if isinstance(chunk, str) and chunk:
                    fragments.append(chunk)
                    await emit(on_progress, StreamChunk(content=chunk, model=model))
                for call in delta.get("tool_calls") or []:
                    _merge_tool_delta(pending_calls, call)
                if choice.get("finish_reason"):
                    finish_reason = choice["finish_reason"]

        content = "".join(fragments)
        await emit(
            on_progress,
            StreamChunk(content=content, model=model, done=True, finish_reason=finish_reason),
        )
        tool_calls = [
            ToolCall(id=c["id"] or new_call_id(), name=c["name"], arguments=c["arguments"] or "{}")
            for _, c in sorted(pending_calls.items())
        ]
        return CompletionResponse(
            content=content,
            model=model,
            provider=self.name,
            tokens_used=tokens,
            finish_reason=finish_reason,
            tool_calls=tool_calls or None,
            raw=last_event,
        )


def _merge_tool_delta(pending: dict[int, dict[str, str]], call: dict[str, Any]) -> None:
    """Tool calls arrive in pieces keyed by ``index``; glue them back together."""
    index = call.get("index", len(pending))
    slot = pending.setdefault(index, {"id": "", "name": "", "arguments": ""})
    if call.get("id"):
        slot["id"] = call["id"]
    function = call.get("function") or {}
    slot["name"] += function.get("name") or ""
    slot["arguments"] += function.get("arguments") or ""


def _text_of(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(p.get("text", "") for p in content if isinstance(p, dict))
    return ""

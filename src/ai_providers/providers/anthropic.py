"""Anthropic Messages API adapter."""

from __future__ import annotations

from typing import Any

from ai_providers.cancellation import CancellationToken
from ai_providers.capabilities import Capabilities, rule
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

_DEFAULT_BASE_URL = "https://api.anthropic.com"
_MESSAGES_PATH = "/v1/messages"
_API_VERSION = "2023-06-01"
_DEFAULT_MAX_TOKENS = 4096
_DEFAULT_TEMPERATURE = 0.3
_JSON_INSTRUCTION = "Respond only with a single valid JSON object."

_CLAUDE_3_5_PLUS = ("claude-3-5", "claude-3.5", "claude-3-7", "claude-3.7")


class AnthropicAdapter(ProviderAdapter):
    """Async adapter for the Anthropic Messages API, including SSE streaming."""

    name = "anthropic"
    default_model = "claude-sonnet-4-0"
    timeout_key = "ANTHROPIC_TIMEOUT"
    base_capabilities = Capabilities(streaming=True)

    capability_rules = (
        rule(any_of=("claude-4", "opus-4", "sonnet-4"), vision=True, tool_use=True,
             json_mode=True, reasoning=True, large_context=True),
        rule(any_of=_CLAUDE_3_5_PLUS, vision=True, tool_use=True, json_mode=True),
        rule("sonnet", any_of=_CLAUDE_3_5_PLUS, large_context=True),
        rule(any_of=("claude-3-7", "claude-3.7"), reasoning=True),
        rule("claude-3", excludes=_CLAUDE_3_5_PLUS, vision=True),
        rule("claude-3", any_of=("opus", "sonnet"), excludes=_CLAUDE_3_5_PLUS, tool_use=True,
             json_mode=True),
        rule("claude-3", "opus", excludes=_CLAUDE_3_5_PLUS, large_context=True),
    )

    selection = SelectionTable(
        breaking=TierChoice("claude-opus-4-0", "Complex or breaking change detected"),
        thresholds=(
            TierThreshold(Tier.LARGE, TierChoice("claude-sonnet-4-0", "Large commit size"), 1000, 30),
            TierThreshold(
                Tier.MEDIUM, TierChoice("claude-3-5-sonnet-latest", "Medium-large commit size"), 500, 15
            ),
            TierThreshold(
                Tier.MEDIUM, TierChoice("claude-3-5-haiku-latest", "Medium commit size"), 200, 8
            ),
        ),
        default=TierChoice("claude-3-haiku-20240307", "Standard commit size"),
    )

    fallbacks = (
        ("opus-4", ("claude-sonnet-4-0", "claude-3-7-sonnet-latest", "claude-3-5-sonnet-latest")),
        ("sonnet-4", ("claude-3-7-sonnet-latest", "claude-3-5-sonnet-latest", "claude-3-opus-latest")),
        ("claude-3-7", ("claude-3-5-sonnet-latest", "claude-3-5-haiku-latest")),
        ("claude-3-5", ("claude-3-5-haiku-latest", "claude-3-haiku-20240307")),
        ("", ("claude-3-5-haiku-latest", "claude-3-haiku-20240307")),
    )

    def is_configured(self) -> bool:
        return self.config.has("ANTHROPIC_API_KEY")

    def required_config(self) -> list[str]:
        return ["ANTHROPIC_API_KEY"]

    def configured_model(self) -> str:
        return self.config.get_str("ANTHROPIC_MODEL") or self.default_model

    def _base_url(self) -> str:
        return (self.config.get_str("ANTHROPIC_API_URL") or _DEFAULT_BASE_URL).rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.get_str("ANTHROPIC_API_KEY") or "",
            "anthropic-version": _API_VERSION,
            "content-type": "application/json",
            "X-Client-Name": "ai-providers",
        }

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
        data = await self._post_json(_MESSAGES_PATH, payload, model=model)
        return self._parse_message(data, model)

    def _build_payload(self, request: CompletionRequest, model: str) -> dict[str, Any]:
        system_text, msgs = split_system(request.messages)
        if request.wants_json:
            system_text = f"{system_text}\n\n{_JSON_INSTRUCTION}" if system_text else _JSON_INSTRUCTION

        payload: dict[str, Any] = {
            "model": model,
            "max_tokens": pick(request.max_tokens, _DEFAULT_MAX_TOKENS),
            "temperature": pick(request.temperature, _DEFAULT_TEMPERATURE),
            "messages": [self._serialize_message(m) for m in msgs],
        }
        if system_text:
            payload["system"] = system_text

        user_id = self.config.get_str("ANTHROPIC_USER_ID")
        if user_id:
            payload["metadata"] = {"user_id": user_id}

        if request.tools:
            payload.update(self._serialize_tools(request.tools, request.tool_choice))
        return payload

    @staticmethod
    def _serialize_message(message: Message) -> dict[str, Any]:
        blocks: list[dict[str, Any]] = []
        for part in message.parts():
            if isinstance(part, TextPart):
                blocks.append({"type": "text", "text": part.text})
            elif part.is_inline:
                mime, data = part.inline_data()
                blocks.append(
                    {"type": "image", "source": {"type": "base64", "media_type": mime, "data": data}}
                )
            else:
                blocks.append({"type": "image", "source": {"type": "url", "url": part.url}})
        return {"role": message.role, "content": blocks}

    @staticmethod
    def _serialize_tools(tools: list[ToolSpec], tool_choice: str) -> dict[str, Any]:
        payload_tools = [
            {
                "name": t.name,
                "description": t.description or "",
                "input_schema": t.parameters,
            }
            for t in tools
        ]
        payload: dict[str, Any] = {"tools": payload_tools}

        if tool_choice == "auto":
            payload["tool_choice"] = {"type": "auto"}
        elif tool_choice == "required":
            payload["tool_choice"] = {"type": "any"}
        elif tool_choice == "none":
            payload["tool_choice"] = {"type": "none"}
        else:
            payload["tool_choice"] = {"type": "tool", "name": tool_choice}
        return payload

    def _parse_message(self, data: dict[str, Any], model: str) -> CompletionResponse:
        parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in data.get("content") or []:
            if block.get("type") == "text":
                parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.get("id") or new_call_id(),
                        name=block.get("name", ""),
                        arguments=encode_arguments(block.get("input")),
                    )
                )

        return CompletionResponse(
            content="".join(parts),
            model=model,
            provider=self.name,
            tokens_used=_total_tokens(data.get("usage")),
            finish_reason=data.get("stop_reason"),
            tool_calls=tool_calls or None,
            raw=data,
        )

    async def _complete_stream(
        self,
        payload: dict[str, Any],
        model: str,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CompletionResponse:
        fragments: list[str] = []
        blocks: dict[int, dict[str, str]] = {}
        input_tokens = output_tokens = 0
        stop_reason: str | None = None
        last_event: dict[str, Any] = {}

        async with self._stream(
            _MESSAGES_PATH,
            {**payload, "stream": True},
            model=model,
            cancel_token=cancel_token,
        ) as response:
            async for event in iter_sse_events(response, cancel_token):
                last_event = event
                kind = event.get("type")

                if kind == "message_start":
                    usage = (event.get("message") or {}).get("usage") or {}
                    input_tokens = usage.get("input_tokens") or 0
                elif kind == "content_block_start":
                    block = event.get("content_block") or {}
                    if block.get("type") == "tool_use":
                        blocks[event.get("index", len(blocks))] = {
                            "id": block.get("id") or new_call_id(),
                            "name": block.get("name", ""),
                            "arguments": "",
                        }
                elif kind == "content_block_delta":
                    delta = event.get("delta") or {}
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        fragments.append(delta["text"])
                        await emit(on_progress, StreamChunk(content=delta["text"], model=model))
                    elif delta.get("type") == "input_json_delta":
                        slot = blocks.get(event.get("index", -1))
                        if slot is not None:
                            slot["arguments"] += delta.get("partial_json") or ""
                elif kind == "message_delta":
                    stop_reason = (event.get("delta") or {}).get("stop_reason") or stop_reason
                    output_tokens = ((event.get("usage") or {}).get("output_tokens")) or output_tokens
                elif kind == "message_stop":
                    break
                elif kind == "error":
                    error = event.get("error") or {}
                    raise self._failure(
                        None, f"{error.get('type', 'error')}: {error.get('message', '')}", model
                    )

        content = "".join(fragments)
        await emit(
            on_progress,
            StreamChunk(content=content, model=model, done=True, finish_reason=stop_reason),
        )
        tool_calls = [
            ToolCall(id=b["id"], name=b["name"], arguments=b["arguments"] or "{}")
            for _, b in sorted(blocks.items())
        ]
        tokens = input_tokens + output_tokens
        return CompletionResponse(
            content=content,
            model=model,
            provider=self.name,
            tokens_used=tokens or None,
            finish_reason=stop_reason,
            tool_calls=tool_calls or None,
            raw=last_event,
        )


def _total_tokens(usage: Any) -> int | None:
    if not isinstance(usage, dict):
        return None
    counts = [usage.get("input_tokens"), usage.get("output_tokens")]
    if all(c is None for c in counts):
        return None
    return sum(c or 0 for c in counts)

"""Canned HTTP traffic for adapter tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Union

import httpx

Reply = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class Recorder:
    """``httpx.MockTransport`` handler replaying canned replies in order.

    The last reply repeats once the queue is down to one entry.
    """

    def __init__(self, *replies: Reply) -> None:
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if callable(reply):
            return reply(request)
        return reply

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def body(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def ok(payload: dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json=payload)


def fail(status: int, payload: Any, headers: dict[str, str] | None = None) -> httpx.Response:
    if isinstance(payload, str):
        return httpx.Response(status, text=payload, headers=headers)
    return httpx.Response(status, json=payload, headers=headers)


def sse(*events: dict[str, Any], done: bool = True) -> httpx.Response:
    lines = []
    for event in events:
        if "type" in event:
            lines.append(f"event: {event['type']}")
        lines.append(f"data: {json.dumps(event)}")
        lines.append("")
    if done:
        lines.extend(["data: [DONE]", ""])
    return httpx.Response(
        200,
        content="\n".join(lines).encode(),
        headers={"content-type": "text/event-stream"},
    )


def ndjson(*events: dict[str, Any]) -> httpx.Response:
    content = "\n".join(json.dumps(e) for e in events) + "\n"
    return httpx.Response(200, content=content.encode(), headers={"content-type": "application/x-ndjson"})


def openai_reply(content: str = "ok", **extra: Any) -> dict[str, Any]:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    message.update(extra.pop("message", {}))
    reply = {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }
    reply.update(extra)
    return reply

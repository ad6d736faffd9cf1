"""Helpers shared by streaming adapters."""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Union

import httpx

from ai_providers.cancellation import CancellationToken
from ai_providers.types import StreamChunk

ProgressCallback = Callable[[StreamChunk], Union[Awaitable[None], None]]

logger = logging.getLogger(__name__)


async def emit(callback: ProgressCallback | None, chunk: StreamChunk) -> None:
    """Deliver a chunk to a sync or async progress callback."""
    if callback is None:
        return
    result = callback(chunk)
    if inspect.isawaitable(result):
        await result


def check(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


async def iter_sse_events(
    response: httpx.Response,
    cancel_token: CancellationToken | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Yield decoded JSON payloads from ``data:`` lines of an SSE stream.

    Stops at ``[DONE]``. ``event:`` lines and non-JSON payloads are skipped.
    """
    async for line in response.aiter_lines():
        check(cancel_token)
        if not line:
            continue
        line = line.strip()
        if not line.startswith("data:"):
            continue

        data_str = line[len("data:") :].strip()
        if data_str == "[DONE]":
            return
        try:
            event = json.loads(data_str)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON streaming chunk: %s", data_str)
            continue
        if isinstance(event, dict):
            yield event


async def iter_ndjson(
    response: httpx.Response,
    cancel_token: CancellationToken | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Yield one decoded object per line of a newline-delimited JSON stream."""
    async for line in response.aiter_lines():
        check(cancel_token)
        line = line.strip()
        if not line:
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON streaming line: %s", line)
            continue
        if isinstance(event, dict):
            yield event


class ProgressRelay:
    """Progress callback wrapper that remembers whether output reached the caller.

    Once a fragment has been delivered, a failed attempt cannot be replayed
    without the caller seeing the same text twice.
    """

    def __init__(self, callback: ProgressCallback) -> None:
        self.callback = callback
        self.started = False

    async def __call__(self, chunk: StreamChunk) -> None:
        if not chunk.done and chunk.content:
            self.started = True
        await emit(self.callback, chunk)

"""Cooperative cancellation token for streaming completions."""

from __future__ import annotations

from ai_providers.errors import CompletionCancelled


class CancellationToken:
    """Flag polled by adapters between stream fragments.

    Adapters call :meth:`raise_if_cancelled` before sending a request and after
    each received fragment; raising unwinds the ``httpx`` stream context, which
    closes the underlying response.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CompletionCancelled(self._reason or "completion cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, reason={self._reason!r})"

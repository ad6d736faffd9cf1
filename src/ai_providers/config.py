"""Read-only configuration mapping consumed by the registry and adapters."""

from __future__ import annotations

import json
import os
from collections.abc import Iterator, Mapping
from typing import Any, Union

from ai_providers.errors import ConfigurationError

ConfigValue = Union[str, int, float]

_TRUE_VALUES = frozenset(("1", "true", "yes", "on"))


class ProviderConfig(Mapping[str, ConfigValue]):
    """Immutable snapshot of string keys to string/number values.

    Blank strings are treated as absent so that ``FOO=`` in an environment
    does not count as configuration.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, ConfigValue] = {}
        for key, value in (values or {}).items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            self._values[str(key)] = value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ProviderConfig:
        return cls(os.environ if environ is None else environ)

    def __getitem__(self, key: str) -> ConfigValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ProviderConfig(keys={sorted(self._values)})"

    def has(self, *keys: str) -> bool:
        """True when every key is present."""
        return all(k in self._values for k in keys)

    def get_str(self, key: str, default: str | None = None) -> str | None:
        value = self._values.get(key)
        return default if value is None else str(value).strip()

    def get_int(self, key: str, default: int | None = None) -> int | None:
        value = self._values.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(key, f"expected an integer, got {value!r}") from exc

    def get_float(self, key: str, default: float | None = None) -> float | None:
        value = self._values.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(key, f"expected a number, got {value!r}") from exc

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        return str(value).strip().lower() in _TRUE_VALUES

    def get_json(self, key: str) -> Any:
        value = self._values.get(key)
        if value is None:
            return None
        try:
            return json.loads(str(value))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(key, f"invalid JSON ({exc.msg})") from exc

    def timeout_s(self, key: str, default_ms: int) -> float:
        """Timeouts are configured in milliseconds; httpx wants seconds."""
        ms = self.get_float(key)
        return (ms if ms is not None else default_ms) / 1000.0

    def replace(self, **updates: Any) -> ProviderConfig:
        merged: dict[str, Any] = dict(self._values)
        merged.update(updates)
        return ProviderConfig(merged)

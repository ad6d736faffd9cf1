"""Registry instantiating adapter families and choosing the active backend."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import httpx

from ai_providers.config import ProviderConfig
from ai_providers.errors import UnsupportedProviderError
from ai_providers.providers import ADAPTER_FAMILIES, ProviderAdapter, UnavailableAdapter
from ai_providers.retry import RetryPolicy

logger = logging.getLogger(__name__)

# tie-break order when AI_PROVIDER is unset or unusable
PRIORITY_ORDER = (
    "azure",
    "vertex",
    "openai",
    "anthropic",
    "google",
    "huggingface",
    "ollama",
    "lmstudio",
)

_registered_families: list[type[ProviderAdapter]] = []


def register_adapter(cls: type[ProviderAdapter]) -> type[ProviderAdapter]:
    """Add an adapter family to every registry created afterwards.

    Usable as a class decorator. Extra families rank after the built-in ones.
    """
    if cls not in _registered_families and cls not in ADAPTER_FAMILIES:
        _registered_families.append(cls)
    return cls


@dataclass(frozen=True)
class ProviderRegistration:
    name: str
    adapter: ProviderAdapter
    available: bool


class ProviderRegistry:
    """Holds one adapter per family and resolves the active one.

    The first resolution is cached; call :meth:`refresh` after the environment
    changed, or :meth:`reconfigure` to rebuild every adapter from a new
    configuration snapshot.
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        adapters: Iterable[type[ProviderAdapter]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._config = config if config is not None else ProviderConfig.from_env()
        self._families = (
            tuple(adapters)
            if adapters is not None
            else ADAPTER_FAMILIES + tuple(_registered_families)
        )
        self._transport = transport
        self._retry_policy = retry_policy
        self._adapters: dict[str, ProviderAdapter] = {}
        self._active: ProviderAdapter | None = None
        self.load_adapters()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def load_adapters(self) -> dict[str, ProviderAdapter]:
        """Instantiate every family; a family whose constructor fails is left out."""
        loaded: dict[str, ProviderAdapter] = {}
        for family in self._families:
            label = getattr(family, "name", family.__name__)
            try:
                adapter = family(
                    self._config, transport=self._transport, retry_policy=self._retry_policy
                )
            except Exception as exc:
                logger.warning("Failed to load provider %s: %s", label, exc)
                continue
            if adapter.name in loaded:
                logger.warning("Duplicate provider name %s, keeping the first one", adapter.name)
                continue
            loaded[adapter.name] = adapter

        self._adapters = loaded
        self._active = None
        return dict(loaded)

    def names(self) -> list[str]:
        """Loaded adapter names, in resolution order."""
        ranked = [n for n in PRIORITY_ORDER if n in self._adapters]
        return ranked + [n for n in self._adapters if n not in PRIORITY_ORDER]

    def get(self, name: str) -> ProviderAdapter:
        try:
            return self._adapters[name]
        except KeyError as exc:
            raise UnsupportedProviderError(name) from exc

    def registrations(self) -> list[ProviderRegistration]:
        return [
            ProviderRegistration(name, self._adapters[name], self._adapters[name].is_configured())
            for name in self.names()
        ]

    def configured(self) -> list[str]:
        return [name for name in self.names() if self._adapters[name].is_configured()]

    def missing_config(self) -> dict[str, list[str]]:
        """Required keys absent from the configuration, per unconfigured adapter."""
        missing = {}
        for name in self.names():
            adapter = self._adapters[name]
            if not adapter.is_configured():
                missing[name] = [k for k in adapter.required_config() if not self._config.has(k)]
        return missing

    def resolve_active(self) -> ProviderAdapter:
        """The preferred adapter if usable, else the first configured one, else the sentinel."""
        if self._active is None:
            self._active = self._resolve()
            logger.info("Active AI provider: %s", self._active.name)
        return self._active

    def _resolve(self) -> ProviderAdapter:
        preferred = (self._config.get_str("AI_PROVIDER") or "").lower()
        if preferred:
            adapter = self._adapters.get(preferred)
            if adapter is not None and adapter.is_configured():
                return adapter
            logger.info("Preferred provider %s is not available, auto-detecting", preferred)

        for name in self.names():
            if self._adapters[name].is_configured():
                return self._adapters[name]
        return UnavailableAdapter(self._config)

    def refresh(self) -> ProviderAdapter:
        """Drop the cached resolution and resolve again."""
        self._active = None
        return self.resolve_active()

    async def reconfigure(self, config: ProviderConfig) -> ProviderAdapter:
        """Close the current adapters and rebuild them from ``config``."""
        await self.aclose()
        self._config = config
        self.load_adapters()
        return self.resolve_active()

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()

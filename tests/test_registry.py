import asyncio
import unittest

from ai_providers import (
    ProviderConfig,
    ProviderRegistry,
    UnsupportedProviderError,
    register_adapter,
)
from ai_providers import registry as registry_module
from ai_providers.providers import ADAPTER_FAMILIES, UnavailableAdapter
from ai_providers.providers.base import ProviderAdapter

OPENAI = {"OPENAI_API_KEY": "sk"}
ANTHROPIC = {"ANTHROPIC_API_KEY": "ak"}
AZURE = {"AZURE_OPENAI_ENDPOINT": "https://e", "AZURE_OPENAI_KEY": "k", "AZURE_OPENAI_DEPLOYMENT_NAME": "d"}


def active(values: dict) -> str:
    return ProviderRegistry(ProviderConfig(values)).resolve_active().name


class CustomAdapter(ProviderAdapter):
    name = "custom"

    def is_configured(self) -> bool:
        return self.config.has("CUSTOM_URL")

    def required_config(self) -> list[str]:
        return ["CUSTOM_URL"]

    def _base_url(self) -> str:
        return self.config.get_str("CUSTOM_URL") or ""

    async def _complete(self, request, model, on_progress, cancel_token):
        raise NotImplementedError


class BrokenAdapter(CustomAdapter):
    name = "broken"

    def __init__(self, config, **kwargs) -> None:
        raise RuntimeError("cannot start")


class RegistryResolutionTests(unittest.TestCase):
    def test_priority_order(self) -> None:
        self.assertEqual(active({**OPENAI, **ANTHROPIC}), "openai")
        self.assertEqual(active({**OPENAI, **ANTHROPIC, **AZURE}), "azure")
        self.assertEqual(active({"OLLAMA_HOST": "h", "LMSTUDIO_API_BASE": "http://l/v1"}), "ollama")

    def test_preferred_provider(self) -> None:
        self.assertEqual(active({**OPENAI, **ANTHROPIC, "AI_PROVIDER": "Anthropic"}), "anthropic")
        # unusable preference falls back to auto-detection
        self.assertEqual(active({**OPENAI, "AI_PROVIDER": "anthropic"}), "openai")
        self.assertEqual(active({**OPENAI, "AI_PROVIDER": "nope"}), "openai")

    def test_nothing_configured_yields_sentinel(self) -> None:
        adapter = ProviderRegistry(ProviderConfig({})).resolve_active()
        self.assertIsInstance(adapter, UnavailableAdapter)
        self.assertEqual(adapter.name, "none")

    def test_resolution_is_deterministic(self) -> None:
        values = {**OPENAI, **ANTHROPIC, "GOOGLE_API_KEY": "g", "OLLAMA_HOST": "h"}
        self.assertEqual({active(values) for _ in range(5)}, {"openai"})

    def test_constructor_failure_leaves_family_out(self) -> None:
        config = ProviderConfig({**OPENAI, "VERTEX_PROJECT_ID": "p", "VERTEX_CREDENTIALS": "{broken"})
        with self.assertLogs("ai_providers.registry", level="WARNING") as logs:
            registry = ProviderRegistry(config)

        self.assertNotIn("vertex", registry.names())
        self.assertIn("Failed to load provider vertex", logs.output[0])
        self.assertEqual(registry.resolve_active().name, "openai")

    def test_broken_custom_family(self) -> None:
        with self.assertLogs("ai_providers.registry", level="WARNING"):
            registry = ProviderRegistry(ProviderConfig(OPENAI), adapters=ADAPTER_FAMILIES + (BrokenAdapter,))
        self.assertEqual(len(registry.names()), len(ADAPTER_FAMILIES))


class RegistryInspectionTests(unittest.TestCase):
    def test_names_and_lookup(self) -> None:
        registry = ProviderRegistry(ProviderConfig(ANTHROPIC))

        self.assertEqual(registry.names(), list(registry_module.PRIORITY_ORDER))
        self.assertEqual(registry.configured(), ["anthropic"])
        self.assertEqual(registry.get("ollama").name, "ollama")
        with self.assertRaises(UnsupportedProviderError):
            registry.get("watson")

        registrations = {r.name: r.available for r in registry.registrations()}
        self.assertTrue(registrations["anthropic"])
        self.assertFalse(registrations["openai"])

    def test_missing_config(self) -> None:
        registry = ProviderRegistry(ProviderConfig({**OPENAI, "VERTEX_PROJECT_ID": "p"}))
        missing = registry.missing_config()

        self.assertNotIn("openai", missing)
        self.assertEqual(missing["anthropic"], ["ANTHROPIC_API_KEY"])
        self.assertEqual(missing["vertex"], ["VERTEX_CREDENTIALS"])
        self.assertEqual(missing["azure"], ["AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_KEY"])

    def test_refresh_and_reconfigure(self) -> None:
        registry = ProviderRegistry(ProviderConfig(OPENAI))
        first = registry.resolve_active()

        self.assertIs(registry.resolve_active(), first)
        self.assertIs(registry.refresh(), first)

        adapter = asyncio.run(registry.reconfigure(ProviderConfig(ANTHROPIC)))
        self.assertEqual(adapter.name, "anthropic")
        self.assertIsNot(registry.get("openai"), first)
        self.assertFalse(registry.get("openai").is_configured())


class RegisterAdapterTests(unittest.TestCase):
    def tearDown(self) -> None:
        if CustomAdapter in registry_module._registered_families:
            registry_module._registered_families.remove(CustomAdapter)

    def test_registered_family_ranks_after_builtins(self) -> None:
        self.assertIs(register_adapter(CustomAdapter), CustomAdapter)
        register_adapter(CustomAdapter)

        registry = ProviderRegistry(ProviderConfig({"CUSTOM_URL": "http://c", "OLLAMA_HOST": "h"}))
        self.assertEqual(registry.names()[-1], "custom")
        self.assertEqual(registry.names().count("custom"), 1)
        self.assertEqual(registry.resolve_active().name, "ollama")

        preferred = ProviderRegistry(ProviderConfig({"CUSTOM_URL": "http://c", "AI_PROVIDER": "custom"}))
        self.assertEqual(preferred.resolve_active().name, "custom")


if __name__ == "__main__":
    unittest.main()

import unittest

from ai_providers.capabilities import Capabilities, CapabilityRule, derive_capabilities, rule
from ai_providers.config import ProviderConfig
from ai_providers.providers import (
    ADAPTER_FAMILIES,
    AnthropicAdapter,
    GoogleAdapter,
    HuggingFaceAdapter,
    LMStudioAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    VertexAIAdapter,
)

ODD_IDS = ("", "unknown-model", "???", "GPT-4O", "claude", "gemini", "x" * 300)


def caps(family, model_id):
    return derive_capabilities(model_id, family.capability_rules, family.base_capabilities)


class CapabilityRuleTests(unittest.TestCase):
    def test_rules_apply_in_order(self) -> None:
        rules = (rule("foo", vision=True, tool_use=True), rule("foo", "lite", vision=False))
        self.assertEqual(derive_capabilities("foo-pro", rules).enabled(), ["vision", "tool_use"])
        self.assertEqual(derive_capabilities("FOO-lite", rules).enabled(), ["tool_use"])

    def test_any_of_and_excludes(self) -> None:
        r = rule("model", any_of=("a1", "b2"), excludes=("mini",), reasoning=True)
        self.assertTrue(r.matches("model-a1"))
        self.assertFalse(r.matches("model-c3"))
        self.assertFalse(r.matches("model-b2-mini"))

    def test_unknown_flag_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CapabilityRule(contains=("x",), flags={"telepathy": True})

    def test_empty_identifier_yields_base(self) -> None:
        base = Capabilities(streaming=True)
        self.assertEqual(derive_capabilities(None, (rule("", vision=True),), base), base)


class FamilyCapabilityTests(unittest.TestCase):
    def test_total_for_every_family(self) -> None:
        for family in ADAPTER_FAMILIES:
            for model_id in ODD_IDS:
                with self.subTest(family=family.name, model=model_id):
                    self.assertIsInstance(caps(family, model_id), Capabilities)

    def test_local_flag_matches_deployment(self) -> None:
        for family in ADAPTER_FAMILIES:
            expected = family in (OllamaAdapter, LMStudioAdapter)
            for model_id in ODD_IDS + ("llama3", "gpt-4o"):
                with self.subTest(family=family.name, model=model_id):
                    self.assertEqual(caps(family, model_id).local, expected)

    def test_openai_families(self) -> None:
        gpt4o = caps(OpenAIAdapter, "gpt-4o")
        self.assertTrue(gpt4o.vision and gpt4o.tool_use and gpt4o.json_mode)
        self.assertFalse(caps(OpenAIAdapter, "gpt-4.1-nano").vision)
        self.assertTrue(caps(OpenAIAdapter, "gpt-4.1-mini").vision)
        self.assertTrue(caps(OpenAIAdapter, "o3-mini").reasoning)

    def test_anthropic_families(self) -> None:
        haiku = caps(AnthropicAdapter, "claude-3-haiku-20240307")
        self.assertTrue(haiku.vision)
        self.assertFalse(haiku.tool_use)
        self.assertTrue(caps(AnthropicAdapter, "claude-3-5-sonnet-latest").large_context)
        self.assertFalse(caps(AnthropicAdapter, "claude-3-5-haiku-latest").large_context)
        self.assertTrue(caps(AnthropicAdapter, "claude-3-7-sonnet-latest").reasoning)
        self.assertEqual(
            caps(AnthropicAdapter, "claude-sonnet-4-0").enabled(),
            ["vision", "tool_use", "json_mode", "reasoning", "large_context", "streaming"],
        )

    def test_gemini_vertex_differences(self) -> None:
        self.assertFalse(caps(GoogleAdapter, "gemini-2.5-flash").reasoning)
        self.assertTrue(caps(VertexAIAdapter, "gemini-2.5-flash").reasoning)
        self.assertTrue(caps(GoogleAdapter, "gemini-2.5-pro").reasoning)
        self.assertTrue(caps(VertexAIAdapter, "gemini-1.0-pro").tool_use)
        self.assertFalse(caps(GoogleAdapter, "gemini-1.0-pro").tool_use)

    def test_local_families(self) -> None:
        self.assertTrue(caps(OllamaAdapter, "llava:13b").vision)
        self.assertTrue(caps(OllamaAdapter, "llama3:8b").tool_use)
        self.assertFalse(caps(OllamaAdapter, "phi3").json_mode)
        self.assertTrue(caps(LMStudioAdapter, "mixtral-mistral-8x7b").reasoning)
        self.assertFalse(caps(LMStudioAdapter, "local-model").tool_use)

    def test_huggingface_families(self) -> None:
        big = caps(HuggingFaceAdapter, "meta-llama/Meta-Llama-3.1-70B-Instruct")
        self.assertTrue(big.reasoning and big.tool_use and big.vision)
        self.assertTrue(caps(HuggingFaceAdapter, "mistralai/Mixtral-8x22B-Instruct-v0.1").tool_use)
        self.assertFalse(caps(HuggingFaceAdapter, "HuggingFaceH4/zephyr-7b-beta").tool_use)

    def test_adapter_uses_configured_model_by_default(self) -> None:
        adapter = OllamaAdapter(ProviderConfig({"OLLAMA_HOST": "localhost", "OLLAMA_MODEL": "llava"}))
        self.assertTrue(adapter.capabilities().vision)
        self.assertFalse(adapter.capabilities("mistral").vision)


if __name__ == "__main__":
    unittest.main()

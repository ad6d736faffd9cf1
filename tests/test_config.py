import unittest

from ai_providers.config import ProviderConfig
from ai_providers.errors import (
    ConfigurationError,
    ModelNotFoundError,
    RateLimitedError,
    UpstreamError,
    classify_failure,
)


class ProviderConfigTests(unittest.TestCase):
    def test_blank_values_are_absent(self) -> None:
        config = ProviderConfig({"OPENAI_API_KEY": "  ", "OLLAMA_HOST": "localhost", "X": None})
        self.assertFalse(config.has("OPENAI_API_KEY"))
        self.assertTrue(config.has("OLLAMA_HOST"))
        self.assertEqual(len(config), 1)
        self.assertEqual(config.get_str("OPENAI_API_KEY", "fallback"), "fallback")

    def test_typed_accessors(self) -> None:
        config = ProviderConfig({"N": "12", "F": 0.5, "B": "Yes", "J": '{"a": 1}'})
        self.assertEqual(config.get_int("N"), 12)
        self.assertEqual(config.get_float("F"), 0.5)
        self.assertTrue(config.get_bool("B"))
        self.assertFalse(config.get_bool("MISSING"))
        self.assertEqual(config.get_json("J"), {"a": 1})
        self.assertIsNone(config.get_json("MISSING"))

    def test_malformed_values_raise_configuration_error(self) -> None:
        config = ProviderConfig({"N": "twelve", "J": "{nope"})
        with self.assertRaises(ConfigurationError) as ctx:
            config.get_int("N")
        self.assertEqual(ctx.exception.key, "N")
        with self.assertRaises(ConfigurationError):
            config.get_json("J")

    def test_timeouts_are_milliseconds(self) -> None:
        config = ProviderConfig({"OPENAI_TIMEOUT": "2500"})
        self.assertEqual(config.timeout_s("OPENAI_TIMEOUT", 60000), 2.5)
        self.assertEqual(config.timeout_s("OTHER_TIMEOUT", 60000), 60.0)

    def test_from_env_and_replace(self) -> None:
        config = ProviderConfig.from_env({"AI_PROVIDER": "ollama"})
        updated = config.replace(AI_PROVIDER="openai", OPENAI_API_KEY="k")
        self.assertEqual(config.get_str("AI_PROVIDER"), "ollama")
        self.assertEqual(updated.get_str("AI_PROVIDER"), "openai")
        self.assertTrue(updated.has("OPENAI_API_KEY"))


class ClassifyFailureTests(unittest.TestCase):
    def test_status_429_is_rate_limited(self) -> None:
        err = classify_failure("openai", "slow down", status_code=429, model="gpt-4o", retry_after=3.0)
        self.assertIsInstance(err, RateLimitedError)
        self.assertEqual(err.retry_after, 3.0)

    def test_quota_text_is_rate_limited(self) -> None:
        err = classify_failure("google", "RESOURCE_EXHAUSTED: quota exceeded", status_code=400)
        self.assertIsInstance(err, RateLimitedError)

    def test_billing_quota_is_not_transient(self) -> None:
        err = classify_failure(
            "openai", '{"error": {"code": "insufficient_quota"}}', status_code=429, model="gpt-4o"
        )
        self.assertIs(type(err), UpstreamError)
        self.assertEqual(err.status_code, 429)

    def test_missing_model(self) -> None:
        err = classify_failure(
            "openai", "The model does not exist", status_code=400, model="gpt-5x", alternatives=["gpt-4o"]
        )
        self.assertIsInstance(err, ModelNotFoundError)
        self.assertEqual(err.model, "gpt-5x")
        self.assertEqual(err.alternatives, ["gpt-4o"])
        self.assertIsInstance(
            classify_failure("ollama", "boom", status_code=404, model="llama3"), ModelNotFoundError
        )

    def test_server_errors_are_upstream(self) -> None:
        # a 5xx mentioning "not available" is an outage, not a missing model
        err = classify_failure("openai", "service not available", status_code=503, model="gpt-4o")
        self.assertIs(type(err), UpstreamError)
        self.assertEqual(err.status_code, 503)

    def test_not_found_without_model_is_upstream(self) -> None:
        err = classify_failure("openai", "route not found", status_code=404)
        self.assertIs(type(err), UpstreamError)


if __name__ == "__main__":
    unittest.main()

import asyncio
import unittest

import httpx
from fakes import Recorder, fail, ndjson, ok

from ai_providers import (
    CompletionRequest,
    ImagePart,
    Message,
    ResponseFormat,
    StreamChunk,
    TextPart,
    ToolSpec,
    UnsupportedFeatureError,
    UpstreamError,
)
from ai_providers.config import ProviderConfig
from ai_providers.providers import OllamaAdapter

TAGS = {
    "models": [
        {
            "name": "llama3:latest",
            "size": 4661224676,
            "modified_at": "2024-05-01T10:00:00Z",
            "details": {"quantization_level": "Q4_0"},
        },
        {"name": "mistral:7b", "size": 4109865159},
    ]
}


def chat_reply(content: str = "ok", **extra) -> dict:
    reply = {
        "model": "llama3",
        "message": {"role": "assistant", "content": content},
        "done": True,
        "done_reason": "stop",
        "prompt_eval_count": 8,
        "eval_count": 4,
    }
    reply.update(extra)
    return reply


def _adapter(recorder: Recorder, **values) -> OllamaAdapter:
    config = ProviderConfig({"OLLAMA_HOST": "localhost:11434", **values})
    return OllamaAdapter(config, transport=recorder.transport)


def _chat(**kwargs) -> CompletionRequest:
    messages = kwargs.pop("messages", [Message(role="user", content="hi")])
    return CompletionRequest(messages=messages, **kwargs)


class OllamaChatTests(unittest.TestCase):
    def test_chat_payload(self) -> None:
        recorder = Recorder(ok(chat_reply("hello")))
        adapter = _adapter(recorder, OLLAMA_KEEP_ALIVE="false")
        req = _chat(
            messages=[
                Message(role="system", content="be nice"),
                Message(
                    role="user",
                    content=[TextPart(text="look"), ImagePart(url="data:image/jpeg;base64,AAAA")],
                ),
            ],
            tools=[ToolSpec(name="lookup")],
            response_format=ResponseFormat(),
            max_tokens=64,
        )

        resp = asyncio.run(adapter.complete(req))

        sent = recorder.requests[0]
        self.assertEqual(str(sent.url), "http://localhost:11434/api/chat")
        body = recorder.body()
        self.assertFalse(body["stream"])
        self.assertEqual(body["messages"][0], {"role": "system", "content": "be nice"})
        self.assertEqual(body["messages"][1], {"role": "user", "content": "look", "images": ["AAAA"]})
        self.assertEqual(body["options"], {"temperature": 0.7, "top_p": 0.9, "num_predict": 64})
        self.assertEqual(body["keep_alive"], 0)
        self.assertEqual(body["format"], "json")
        self.assertEqual(body["tools"][0]["function"]["name"], "lookup")
        self.assertEqual(resp.content, "hello")
        self.assertEqual(resp.tokens_used, 12)
        self.assertEqual(resp.finish_reason, "stop")

    def test_unsupported_features_are_dropped_for_small_models(self) -> None:
        recorder = Recorder(ok(chat_reply(prompt_eval_count=None, eval_count=None)))
        adapter = _adapter(recorder, OLLAMA_MODEL="phi3", OLLAMA_KEEP_ALIVE="10m")

        resp = asyncio.run(adapter.complete(_chat(tools=[ToolSpec(name="x")], response_format=ResponseFormat())))

        body = recorder.body()
        self.assertEqual(body["model"], "phi3")
        self.assertEqual(body["keep_alive"], "10m")
        self.assertNotIn("tools", body)
        self.assertNotIn("format", body)
        self.assertIsNone(resp.tokens_used)

    def test_remote_images_rejected(self) -> None:
        recorder = Recorder(ok(chat_reply()))
        adapter = _adapter(recorder)
        req = _chat(messages=[Message(role="user", content=[ImagePart(url="https://x/y.png")])])

        with self.assertRaises(UnsupportedFeatureError):
            asyncio.run(adapter.complete(req))
        self.assertEqual(recorder.requests, [])

    def test_custom_headers(self) -> None:
        recorder = Recorder(ok(chat_reply()))
        adapter = _adapter(recorder, OLLAMA_HEADERS='{"X-Proxy-Token": "secret"}')

        asyncio.run(adapter.complete(_chat()))
        self.assertEqual(recorder.requests[0].headers["x-proxy-token"], "secret")

    def test_malformed_headers_only_warn(self) -> None:
        with self.assertLogs("ai_providers.providers.base", level="WARNING") as logs:
            adapter = OllamaAdapter(ProviderConfig({"OLLAMA_HOST": "h", "OLLAMA_HEADERS": "{bad"}))
        self.assertIn("OLLAMA_HEADERS", logs.output[0])
        self.assertTrue(adapter.is_configured())

    def test_streaming_ndjson(self) -> None:
        recorder = Recorder(
            ndjson(
                {"message": {"role": "assistant", "content": "Hel"}, "done": False},
                {"message": {"role": "assistant", "content": "lo"}, "done": False},
                {"message": {"role": "assistant", "content": ""}, "done": True, "done_reason": "stop",
                 "prompt_eval_count": 3, "eval_count": 2},
            )
        )
        adapter = _adapter(recorder)
        chunks: list[StreamChunk] = []

        resp = asyncio.run(adapter.complete(_chat(stream=True), on_progress=chunks.append))

        self.assertTrue(recorder.body()["stream"])
        self.assertEqual([c.content for c in chunks], ["Hel", "lo", "Hello"])
        self.assertEqual(resp.tokens_used, 5)
        self.assertEqual(resp.finish_reason, "stop")

    def test_stream_error_line(self) -> None:
        adapter = _adapter(Recorder(ndjson({"error": "something broke"})))

        with self.assertRaisesRegex(UpstreamError, "something broke"):
            asyncio.run(adapter.complete(_chat(stream=True)))

    def test_missing_model_falls_back(self) -> None:
        recorder = Recorder(
            fail(404, {"error": "model 'llama3' not found, try pulling it first"}),
            ok(chat_reply("from mistral")),
        )
        adapter = _adapter(recorder)

        with self.assertLogs("ai_providers.providers.base", level="WARNING"):
            resp = asyncio.run(adapter.complete(_chat()))
        self.assertEqual(recorder.body(1)["model"], "mistral")
        self.assertEqual(resp.model, "mistral")


class OllamaModelTests(unittest.TestCase):
    def test_list_and_validate(self) -> None:
        adapter = _adapter(Recorder(ok(TAGS)))

        self.assertEqual(asyncio.run(adapter.list_models()), ["llama3:latest", "mistral:7b"])
        found = asyncio.run(adapter.validate_model("llama3"))
        self.assertTrue(found.available)
        self.assertEqual(found.details["quantization"], "Q4_0")
        self.assertTrue(found.capabilities.local)

        missing = asyncio.run(adapter.validate_model("gemma"))
        self.assertEqual(missing.reason, "model_not_found")
        self.assertEqual(missing.alternatives, ["llama3:latest", "mistral:7b"])

    def test_validate_unreachable_host(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        adapter = _adapter(Recorder(refuse))
        result = asyncio.run(adapter.validate_model("llama3"))
        self.assertEqual(result.reason, "api_error")
        self.assertIn("Could not connect to Ollama host", result.error)

    def test_embeddings_and_pull(self) -> None:
        recorder = Recorder(ok({"embedding": [0.1, 0.2, 0.3]}), ok({"status": "success"}))
        adapter = _adapter(recorder)

        embedding = asyncio.run(adapter.generate_embedding("hello"))
        status = asyncio.run(adapter.pull_model("llama3"))

        self.assertEqual(recorder.requests[0].url.path, "/api/embeddings")
        self.assertEqual(recorder.body(0), {"model": "nomic-embed-text", "prompt": "hello"})
        self.assertEqual(embedding.embedding, [0.1, 0.2, 0.3])
        self.assertEqual(recorder.requests[1].url.path, "/api/pull")
        self.assertEqual(recorder.body(1), {"model": "llama3", "stream": False})
        self.assertEqual(status, "success")

    def test_connection_report(self) -> None:
        def route(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/tags":
                return ok(TAGS)
            return ok(chat_reply("pong"))

        recorder = Recorder(route)
        adapter = _adapter(recorder)

        report = asyncio.run(adapter.test_connection())
        self.assertTrue(report.success)
        self.assertEqual(report.model, "llama3:latest")
        self.assertEqual(report.details["available_models"], ["llama3:latest", "mistral:7b"])
        self.assertEqual(recorder.body()["options"]["num_predict"], 10)

    def test_connection_failure_message(self) -> None:
        adapter = _adapter(Recorder(fail(502, "bad gateway")))

        report = asyncio.run(adapter.test_connection())
        self.assertFalse(report.success)
        self.assertTrue(report.error.startswith("Failed to connect to Ollama at http://localhost:11434."))


if __name__ == "__main__":
    unittest.main()

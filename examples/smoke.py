import asyncio
import os

from ai_providers import (
    ChangeSignals,
    CompletionClient,
    CompletionRequest,
    Message,
    ModelSelector,
    NoProviderAvailable,
    ProviderConfig,
    ProviderRegistry,
    StreamChunk,
)


async def main() -> None:
    registry = ProviderRegistry(ProviderConfig.from_env(os.environ))
    client = CompletionClient(registry)

    print("Configured providers:", registry.configured() or "none")
    for name, keys in registry.missing_config().items():
        print(f"  {name}: missing {', '.join(keys)}")

    recommendation = ModelSelector(registry).recommend(ChangeSignals(files=12, lines=480))
    print("Recommended model:", recommendation.model if recommendation else "rule-based")

    req = CompletionRequest(
        messages=[Message(role="user", content="Say hi in five words.")],
        stream=True,
    )

    def show(chunk: StreamChunk) -> None:
        if not chunk.done:
            print(chunk.content, end="", flush=True)

    try:
        resp = await client.complete(req, on_progress=show)
        print(f"\n[{resp.provider}:{resp.model}] tokens={resp.tokens_used}")
    except NoProviderAvailable as e:
        print("Expected error:", type(e).__name__, e)
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())

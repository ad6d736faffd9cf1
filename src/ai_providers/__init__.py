"""Uniform async completion interface over cloud and local LLM backends."""

from .cancellation import CancellationToken
from .capabilities import Capabilities, CapabilityRule
from .client import CompletionClient
from .config import ProviderConfig
from .errors import (
    AIProviderError,
    CompletionCancelled,
    ConfigurationError,
    ModelNotFoundError,
    NoProviderAvailable,
    NotConfiguredError,
    RateLimitedError,
    UnsupportedFeatureError,
    UnsupportedProviderError,
    UpstreamError,
)
from .registry import PRIORITY_ORDER, ProviderRegistration, ProviderRegistry, register_adapter
from .retry import RetryPolicy
from .selector import ModelSelector
from .types import (
    ChangeSignals,
    CompletionRequest,
    CompletionResponse,
    ImagePart,
    Message,
    ModelRecommendation,
    ResponseFormat,
    StreamChunk,
    TextPart,
    Tier,
    ToolCall,
    ToolSpec,
)

__all__ = [
    "AIProviderError",
    "CancellationToken",
    "Capabilities",
    "CapabilityRule",
    "ChangeSignals",
    "CompletionCancelled",
    "CompletionClient",
    "CompletionRequest",
    "CompletionResponse",
    "ConfigurationError",
    "ImagePart",
    "Message",
    "ModelNotFoundError",
    "ModelRecommendation",
    "ModelSelector",
    "NoProviderAvailable",
    "NotConfiguredError",
    "PRIORITY_ORDER",
    "ProviderConfig",
    "ProviderRegistration",
    "ProviderRegistry",
    "RateLimitedError",
    "ResponseFormat",
    "RetryPolicy",
    "StreamChunk",
    "TextPart",
    "Tier",
    "ToolCall",
    "ToolSpec",
    "UnsupportedFeatureError",
    "UnsupportedProviderError",
    "UpstreamError",
    "register_adapter",
]

"""Backend adapters for ai_providers."""

from .anthropic import AnthropicAdapter
from .azure import AzureOpenAIAdapter
from .base import ProviderAdapter
from .google import GoogleAdapter
from .huggingface import HuggingFaceAdapter
from .lmstudio import LMStudioAdapter
from .ollama import OllamaAdapter
from .openai import OpenAIAdapter
from .unavailable import UnavailableAdapter
from .vertex import VertexAIAdapter

# every family the registry instantiates by default
ADAPTER_FAMILIES: tuple[type[ProviderAdapter], ...] = (
    AzureOpenAIAdapter,
    VertexAIAdapter,
    OpenAIAdapter,
    AnthropicAdapter,
    GoogleAdapter,
    HuggingFaceAdapter,
    OllamaAdapter,
    LMStudioAdapter,
)

__all__ = [
    "ADAPTER_FAMILIES",
    "ProviderAdapter",
    "AzureOpenAIAdapter",
    "VertexAIAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "HuggingFaceAdapter",
    "OllamaAdapter",
    "LMStudioAdapter",
    "UnavailableAdapter",
]

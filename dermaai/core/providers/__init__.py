"""
Diagnostic Provider Clients

One client per external diagnostic AI backend. Each performs a single
attempt and returns a ProviderSuccess or a classified ProviderFailure.
"""
from .base import ProviderClient, ProviderConfig, classify_status
from .images import DefaultImageResolver, ImageResolver, ResolvedImage
from .prompts import build_prompt, parse_diagnoses
from .gemini_client import GeminiProviderClient, GeminiModel
from .openai_client import OpenAIProviderClient

__all__ = [
    "ProviderClient",
    "ProviderConfig",
    "classify_status",
    "DefaultImageResolver",
    "ImageResolver",
    "ResolvedImage",
    "build_prompt",
    "parse_diagnoses",
    "GeminiProviderClient",
    "GeminiModel",
    "OpenAIProviderClient",
]

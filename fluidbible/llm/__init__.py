"""Provider-facing abstractions for fluid generation.

This package defines the prompt library, the chat-completions client, the
fluid generator and verse source, the request rate limiter, and the
ephemeral content cache.
"""

from .cache import EphemeralCache
from .generator import ChatFluidGenerator, FluidGenerator
from .openai_client import ChatCompletionClient
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter
from .verse_source import ChatVerseSource, VerseSource

__all__ = [
    "ChatCompletionClient",
    "ChatFluidGenerator",
    "ChatVerseSource",
    "EphemeralCache",
    "FluidGenerator",
    "PromptLibrary",
    "RateLimiter",
    "VerseSource",
]

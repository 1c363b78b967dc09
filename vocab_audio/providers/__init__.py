"""
Generation Provider Implementations

Providers:
    - SoundOfTextProvider: SoundOfText job-based TTS (aiohttp)
    - MockGenerationProvider: In-process provider for tests and offline use
"""

from ..config import AudioConfig
from .base import GenerationProvider
from .mock import MockGenerationProvider
from .soundoftext import SoundOfTextProvider


def create_provider(config: AudioConfig) -> GenerationProvider:
    """Build the provider named by `config.provider`."""
    if config.provider == "mock":
        return MockGenerationProvider()
    return SoundOfTextProvider(config)


__all__ = [
    "GenerationProvider",
    "MockGenerationProvider",
    "SoundOfTextProvider",
    "create_provider",
]

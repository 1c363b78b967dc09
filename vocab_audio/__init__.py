"""
Vocabulary Pronunciation Audio Service

Resolves, generates, plays and exports pronunciation audio for vocabulary
cards.

Features:
- Fast path: pre-generated local audio with minimum-size validation
- On-demand generation through a job-based TTS provider (SoundOfText)
  with bounded submit/poll/download retries
- Local speech synthesis fallback (espeak-ng)
- Last-request-wins playback control with cooperative cancellation
- Sequential batch export of card images and example audio as zip
- HTTP REST API with FastAPI

Architecture:
    Client (HTTP) → FastAPI → AudioResolver → LocalAssetStore
                                            → GenerationJobClient → Providers
                                            → Speech synthesis

Usage:
    from vocab_audio import AudioConfig, build_services
"""

from .config import AudioConfig
from .asset_store import LocalAssetStore
from .generation_client import GenerationJobClient
from .resolver import AudioResolver
from .playback import PlaybackController
from .batch_export import BatchExportPipeline
from .services import AudioServices, build_services

__all__ = [
    "AudioConfig",
    "LocalAssetStore",
    "GenerationJobClient",
    "AudioResolver",
    "PlaybackController",
    "BatchExportPipeline",
    "AudioServices",
    "build_services",
]

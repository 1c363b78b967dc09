"""
Audio Pipeline Configuration Module

Configuration dataclass for the vocabulary audio service with environment
variable loading and validation.

Covers:
    - Generation provider selection (soundoftext, mock)
    - Retry / polling budgets for on-demand generation
    - Minimum-size validation for audio assets
    - Storage layout root for generated audio and card images
    - Local speech synthesis fallback settings
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

VALID_PROVIDERS = ["soundoftext", "mock"]


@dataclass
class AudioConfig:
    """
    Configuration for the vocabulary audio service.

    Generation budget:
        A generation call runs at most `generation_retries` full
        submit-poll-download cycles with `retry_backoff` seconds between
        cycles. Each cycle polls every `poll_interval` seconds, at most
        `poll_max_attempts` times.

    Asset validation:
        Any audio file or download of `min_audio_bytes` bytes or fewer is
        treated as corrupt and never served.
    """

    # Provider selection
    provider: str = "soundoftext"
    provider_base_url: str = "https://api.soundoftext.com"
    provider_engine: str = "Google"
    default_language: str = "th-TH"
    request_timeout: float = 30.0

    # Generation budget
    generation_retries: int = 3
    retry_backoff: float = 2.0
    poll_interval: float = 2.0
    poll_max_attempts: int = 20

    # Asset storage
    generated_dir: str = "./generated"
    min_audio_bytes: int = 1000
    write_fallback_markers: bool = True
    catalog_path: Optional[str] = None

    # Resolution
    resolver_cache_size: int = 256
    proxy_download_prefix: str = "/api/audio/download"

    # Local speech synthesis
    speech_rate: float = 0.9

    # Export
    export_archive_prefix: str = "thai_cards"

    # Service settings
    service_port: int = 8010
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> "AudioConfig":
        """
        Load configuration from environment variables.

        Environment variables:
            - VOCAB_AUDIO_PROVIDER: Generation provider (default: soundoftext)
            - VOCAB_AUDIO_PROVIDER_URL: Provider base URL
            - VOCAB_AUDIO_PROVIDER_ENGINE: Provider engine name (default: Google)
            - VOCAB_AUDIO_LANGUAGE: Default language tag (default: th-TH)
            - VOCAB_AUDIO_TIMEOUT: HTTP request timeout (default: 30.0s)
            - VOCAB_AUDIO_RETRIES: Full generation cycles (default: 3)
            - VOCAB_AUDIO_RETRY_BACKOFF: Seconds between cycles (default: 2.0)
            - VOCAB_AUDIO_POLL_INTERVAL: Seconds between status polls (default: 2.0)
            - VOCAB_AUDIO_POLL_ATTEMPTS: Polls per cycle (default: 20)
            - VOCAB_AUDIO_GENERATED_DIR: Storage root (default: ./generated)
            - VOCAB_AUDIO_MIN_BYTES: Minimum valid audio size (default: 1000)
            - VOCAB_AUDIO_FALLBACK_MARKERS: Write JSON speech markers (default: true)
            - VOCAB_AUDIO_CATALOG: JSON file with catalog items (default: none)
            - VOCAB_AUDIO_RESOLVER_CACHE_SIZE: Resolver LRU entries (default: 256)
            - VOCAB_AUDIO_SPEECH_RATE: Local speech rate factor (default: 0.9)
            - VOCAB_AUDIO_EXPORT_PREFIX: Archive filename prefix (default: thai_cards)
            - VOCAB_AUDIO_SERVICE_PORT: HTTP port (default: 8010)
            - VOCAB_AUDIO_LOG_LEVEL: Logging level (default: INFO)

        Returns:
            AudioConfig instance with values from environment or defaults
        """
        return AudioConfig(
            provider=os.getenv("VOCAB_AUDIO_PROVIDER", "soundoftext"),
            provider_base_url=os.getenv("VOCAB_AUDIO_PROVIDER_URL", "https://api.soundoftext.com"),
            provider_engine=os.getenv("VOCAB_AUDIO_PROVIDER_ENGINE", "Google"),
            default_language=os.getenv("VOCAB_AUDIO_LANGUAGE", "th-TH"),
            request_timeout=float(os.getenv("VOCAB_AUDIO_TIMEOUT", "30.0")),
            generation_retries=int(os.getenv("VOCAB_AUDIO_RETRIES", "3")),
            retry_backoff=float(os.getenv("VOCAB_AUDIO_RETRY_BACKOFF", "2.0")),
            poll_interval=float(os.getenv("VOCAB_AUDIO_POLL_INTERVAL", "2.0")),
            poll_max_attempts=int(os.getenv("VOCAB_AUDIO_POLL_ATTEMPTS", "20")),
            generated_dir=os.getenv("VOCAB_AUDIO_GENERATED_DIR", "./generated"),
            min_audio_bytes=int(os.getenv("VOCAB_AUDIO_MIN_BYTES", "1000")),
            write_fallback_markers=os.getenv("VOCAB_AUDIO_FALLBACK_MARKERS", "true").lower() == "true",
            catalog_path=os.getenv("VOCAB_AUDIO_CATALOG") or None,
            resolver_cache_size=int(os.getenv("VOCAB_AUDIO_RESOLVER_CACHE_SIZE", "256")),
            speech_rate=float(os.getenv("VOCAB_AUDIO_SPEECH_RATE", "0.9")),
            export_archive_prefix=os.getenv("VOCAB_AUDIO_EXPORT_PREFIX", "thai_cards"),
            service_port=int(os.getenv("VOCAB_AUDIO_SERVICE_PORT", "8010")),
            log_level=os.getenv("VOCAB_AUDIO_LOG_LEVEL", "INFO"),
        )

    def __post_init__(self):
        """
        Validate configuration after initialization.

        Validations:
            - Provider is valid (soundoftext, mock)
            - Retry, poll and cache budgets are positive
            - Backoff and poll interval are non-negative
            - Speech rate is between 0.1 and 10.0 (clamped)

        Raises:
            ValueError: If any validation fails
        """
        if self.provider not in VALID_PROVIDERS:
            raise ValueError(f"Invalid provider: {self.provider}. Must be one of: {VALID_PROVIDERS}")

        if self.generation_retries <= 0:
            raise ValueError(f"Invalid generation_retries: {self.generation_retries}. Must be positive.")

        if self.poll_max_attempts <= 0:
            raise ValueError(f"Invalid poll_max_attempts: {self.poll_max_attempts}. Must be positive.")

        if self.retry_backoff < 0 or self.poll_interval < 0:
            raise ValueError("retry_backoff and poll_interval must not be negative.")

        if self.request_timeout <= 0:
            raise ValueError(f"Invalid request_timeout: {self.request_timeout}. Must be positive.")

        if self.min_audio_bytes < 0:
            raise ValueError(f"Invalid min_audio_bytes: {self.min_audio_bytes}. Must not be negative.")

        if self.resolver_cache_size <= 0:
            raise ValueError(f"Invalid resolver_cache_size: {self.resolver_cache_size}. Must be positive.")

        if not (0.1 <= self.speech_rate <= 10.0):
            logger.warning(f"Speech rate {self.speech_rate} outside range [0.1, 10.0]. Clamping.")
            self.speech_rate = max(0.1, min(10.0, self.speech_rate))

        self.provider_base_url = self.provider_base_url.rstrip("/")
        self.proxy_download_prefix = self.proxy_download_prefix.rstrip("/")

        logger.info(
            f" Audio Config: provider={self.provider}, retries={self.generation_retries}, "
            f"polls={self.poll_max_attempts}x{self.poll_interval}s, min_bytes={self.min_audio_bytes}"
        )

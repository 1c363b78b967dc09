"""
Service wiring.

Builds every pipeline component from one AudioConfig and hands them out as
a single container. Nothing here is a process-wide singleton; the HTTP app
and the CLI each build their own container.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .asset_store import LocalAssetStore
from .batch_export import AudioFetcher, BatchExportPipeline
from .card_generation import CardGenerationService
from .catalog import Catalog, InMemoryCatalog
from .config import AudioConfig
from .generation_client import GenerationJobClient, SleepFunc
from .providers import GenerationProvider, create_provider
from .resolver import AudioResolver

logger = logging.getLogger(__name__)


@dataclass
class AudioServices:
    config: AudioConfig
    catalog: Catalog
    store: LocalAssetStore
    provider: GenerationProvider
    generator: GenerationJobClient
    resolver: AudioResolver
    fetcher: AudioFetcher
    exporter: BatchExportPipeline
    cards: CardGenerationService

    def get_stats(self) -> Dict[str, Any]:
        return {
            "store": self.store.get_stats(),
            "resolver": self.resolver.get_stats(),
            "generator": self.generator.get_stats(),
        }

    async def close(self):
        await self.generator.close()


def load_catalog(config: AudioConfig) -> InMemoryCatalog:
    """Catalog from `config.catalog_path`, or an empty one."""
    if not config.catalog_path:
        logger.info(" No catalog file configured, starting with an empty catalog")
        return InMemoryCatalog()
    return InMemoryCatalog.from_json_file(config.catalog_path)


def build_services(
    config: AudioConfig,
    catalog: Optional[Catalog] = None,
    provider: Optional[GenerationProvider] = None,
    sleep: Optional[SleepFunc] = None,
    speech_available: Optional[Callable[[], bool]] = None,
) -> AudioServices:
    """
    Wire the pipeline.

    Args:
        config: Audio configuration
        catalog: Catalog collaborator (loaded from config when omitted)
        provider: Generation provider (built from config when omitted)
        sleep: Sleep function for poll/retry waits (tests pass a fake)
        speech_available: Local speech capability check (defaults to none,
            the HTTP service has no local audio output)
    """
    catalog = catalog if catalog is not None else load_catalog(config)
    provider = provider or create_provider(config)
    store = LocalAssetStore(config.generated_dir, min_bytes=config.min_audio_bytes)
    generator = GenerationJobClient(provider, config, sleep=sleep)
    resolver = AudioResolver(
        catalog,
        store,
        generator,
        config,
        speech_available=speech_available or (lambda: False),
    )
    fetcher = AudioFetcher(store, generator, config)
    return AudioServices(
        config=config,
        catalog=catalog,
        store=store,
        provider=provider,
        generator=generator,
        resolver=resolver,
        fetcher=fetcher,
        exporter=BatchExportPipeline(resolver, fetcher, config),
        cards=CardGenerationService(catalog, store, generator, config),
    )

"""
Audio Resolver

Decides where the audio for a request comes from. First success wins:

    1. Fast path: the catalog records an asset for (content id, kind) whose
       text matches the request and the store holds a valid file for it
       -> LocalFile (no network I/O)
    2. On-demand generation through GenerationJobClient
       -> RemoteStream pointing at the proxy download endpoint
    3. Local speech synthesis
       -> SynthesizedSpeech

Failures in steps 1-2 are logged and absorbed. Only a missing speech
capability in step 3 is raised (NoPlaybackCapability).

Generated proxy URLs are kept in a bounded LRU keyed by (content id, kind,
text, language) so repeated requests in one session do not regenerate. Each
catalog slot owns its entry: two items sharing a text each get their own
stored asset.
"""

import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

from .asset_store import LocalAssetStore
from .catalog import Catalog, recorded_asset
from .config import AudioConfig
from .errors import AudioPipelineError, CorruptAsset, NoPlaybackCapability, ResolutionCancelled
from .generation_client import GenerationJobClient
from .models import (
    AssetKind,
    AudioRequest,
    AudioSource,
    CancellationToken,
    GeneratedAudio,
    LocalFile,
    RemoteStream,
    SynthesizedSpeech,
)

logger = logging.getLogger(__name__)

CacheKey = Tuple[Optional[int], AssetKind, str, str]


class SourceCache:
    """Bounded LRU of resolved sources; least recently used entry is evicted first."""

    def __init__(self, max_size: int = 256):
        self.max_size = max_size
        self._entries: "OrderedDict[CacheKey, AudioSource]" = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: CacheKey) -> Optional[AudioSource]:
        source = self._entries.get(key)
        if source is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return source

    def put(self, key: CacheKey, source: AudioSource):
        self._entries[key] = source
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)
            self.evictions += 1

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def strip_storage_prefix(path: str) -> str:
    """Catalog paths may carry the legacy "generated/" root prefix."""
    return path[len("generated/"):] if path.startswith("generated/") else path


class AudioResolver:
    """
    Source decision engine.

    Args:
        catalog: Catalog collaborator (text fields and recorded asset paths)
        store: Local asset store (fast-path validation, generated asset writes)
        generator: Generation job client (slow path)
        config: Audio configuration
        speech_available: Capability check for local speech synthesis
    """

    def __init__(
        self,
        catalog: Catalog,
        store: LocalAssetStore,
        generator: GenerationJobClient,
        config: AudioConfig,
        speech_available: Callable[[], bool],
    ):
        self.catalog = catalog
        self.store = store
        self.generator = generator
        self.config = config
        self.speech_available = speech_available
        self.cache = SourceCache(config.resolver_cache_size)
        self.stats = {
            "requests": 0,
            "fast_path": 0,
            "generated": 0,
            "cached": 0,
            "synthesized": 0,
            "generation_failures": 0,
            "assets_written": 0,
        }

    def proxy_url(self, job_id: str) -> str:
        return f"{self.config.proxy_download_prefix}/{job_id}"

    async def resolve(self, request: AudioRequest, token: Optional[CancellationToken] = None) -> AudioSource:
        """
        Resolve a request to a playable source.

        Raises:
            ValueError: Empty text
            NoPlaybackCapability: Every source failed and speech is unavailable
            ResolutionCancelled: Token superseded during resolution
        """
        if not request.text or not request.text.strip():
            raise ValueError("Empty text provided")

        self.stats["requests"] += 1

        local = await self._fast_path(request)
        if local is not None:
            self.stats["fast_path"] += 1
            return local

        if token is not None:
            token.check()

        remote = await self._generate(request, token)
        if remote is not None:
            return remote

        if token is not None:
            token.check()

        if not self.speech_available():
            logger.error(f" All audio sources failed for \"{request.text[:50]}\" and speech is unavailable")
            raise NoPlaybackCapability("Speech synthesis not supported")

        self.stats["synthesized"] += 1
        logger.info(f" Falling back to speech synthesis for \"{request.text[:50]}\"")
        return SynthesizedSpeech(text=request.text, language=request.language)

    async def _fast_path(self, request: AudioRequest) -> Optional[LocalFile]:
        if request.content_id is None:
            return None
        item = await self.catalog.get_item(request.content_id)
        if item is None:
            return None
        path = recorded_asset(item, request.kind, request.text)
        if not path:
            return None
        path = strip_storage_prefix(path)
        if path.endswith(".json"):
            # Fallback marker: a previous generation failed, try again
            return None
        try:
            if self.store.exists(path):
                logger.debug(f" Fast path hit: {path}")
                return LocalFile(path)
        except AudioPipelineError as e:
            logger.warning(f" Recorded asset unusable for {request.content_id}: {e}")
        except ValueError as e:
            logger.warning(f" Recorded asset path invalid for {request.content_id}: {e}")
        return None

    async def _generate(self, request: AudioRequest, token: Optional[CancellationToken]) -> Optional[RemoteStream]:
        cache_key = (request.content_id, request.kind, request.text, request.language)
        cached = self.cache.get(cache_key)
        if isinstance(cached, RemoteStream):
            self.stats["cached"] += 1
            return cached

        try:
            generated = await self.generator.generate(request.text, request.language, token)
        except ResolutionCancelled:
            raise
        except AudioPipelineError as e:
            self.stats["generation_failures"] += 1
            logger.warning(f" On-demand generation failed, falling through: {e}")
            return None

        source = RemoteStream(self.proxy_url(generated.job.id))
        self.cache.put(cache_key, source)
        self.stats["generated"] += 1

        if request.content_id is not None and request.kind != AssetKind.IMAGE:
            await self._store_generated(request, generated)
        return source

    async def _store_generated(self, request: AudioRequest, generated: GeneratedAudio):
        try:
            record = self.store.write_asset(request.content_id, request.kind, generated.payload)
        except (CorruptAsset, OSError) as e:
            logger.warning(f" Could not store generated audio for {request.content_id}: {e}")
            return
        self.stats["assets_written"] += 1
        if request.kind == AssetKind.WORD:
            await self.catalog.update_assets(request.content_id, word_audio=record.storage_path)
        else:
            await self.catalog.update_assets(request.content_id, example_audio=record.storage_path)

    def clear_cache(self):
        self.cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        stats["cache"] = {
            "size": len(self.cache),
            "max_size": self.cache.max_size,
            "hits": self.cache.hits,
            "misses": self.cache.misses,
            "evictions": self.cache.evictions,
        }
        return stats

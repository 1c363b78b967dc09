"""
pytest Configuration and Fixtures

Provides reusable fixtures for audio pipeline testing:
    - audio_config: AudioConfig with mock provider and zero waits
    - asset_store: LocalAssetStore in a temporary directory
    - mock_provider / generation_client: in-process job provider
    - catalog: InMemoryCatalog with three Thai sample cards
    - resolver: AudioResolver with speech synthesis available
    - FakeBackend / FakeHandle: audio output that plays nothing
"""

import asyncio
from typing import List
from unittest.mock import AsyncMock

import pytest

from vocab_audio.asset_store import LocalAssetStore
from vocab_audio.catalog import InMemoryCatalog
from vocab_audio.config import AudioConfig
from vocab_audio.errors import NoPlaybackCapability, ProviderUnavailable
from vocab_audio.generation_client import GenerationJobClient
from vocab_audio.models import ContentItem, SynthesizedSpeech
from vocab_audio.providers.mock import MockGenerationProvider, silent_mp3
from vocab_audio.resolver import AudioResolver
from vocab_audio.speech import PlaybackEnd


class FakeHandle:
    """AudioHandle that ends when finish() or stop() is called."""

    def __init__(self, source, end: PlaybackEnd = PlaybackEnd.FINISHED):
        self.source = source
        self.end = end
        self.stop_calls = 0
        self.finished = False
        self._stopped = False
        self._done = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self):
        if self._stopped:
            return
        self._stopped = True
        self.stop_calls += 1
        self._done.set()

    def finish(self):
        self.finished = True
        self._done.set()

    @property
    def audible(self) -> bool:
        return not self._stopped and not self.finished

    async def wait(self) -> PlaybackEnd:
        await self._done.wait()
        return PlaybackEnd.STOPPED if self._stopped else self.end


class FakeBackend:
    """AudioBackend recording every started handle."""

    def __init__(self, speak: bool = True, playable: bool = True, speech_end: PlaybackEnd = PlaybackEnd.FINISHED):
        self.speak = speak
        self.playable = playable
        self.speech_end = speech_end
        self.handles: List[FakeHandle] = []

    def can_speak(self) -> bool:
        return self.speak

    async def start(self, source) -> FakeHandle:
        if isinstance(source, SynthesizedSpeech):
            if not self.speak:
                raise NoPlaybackCapability("Speech synthesis not supported")
            handle = FakeHandle(source, self.speech_end)
        else:
            if not self.playable:
                raise NoPlaybackCapability("No audio player available")
            handle = FakeHandle(source)
        self.handles.append(handle)
        return handle

    @property
    def audible(self) -> List[FakeHandle]:
        return [handle for handle in self.handles if handle.audible]


class SelectiveProvider(MockGenerationProvider):
    """Mock provider whose submit fails for the given texts."""

    def __init__(self, failing_texts, **kwargs):
        super().__init__(**kwargs)
        self.failing_texts = set(failing_texts)

    async def submit(self, text: str, language: str) -> str:
        if text in self.failing_texts:
            self.submit_calls += 1
            raise ProviderUnavailable("SoundOfText API returned 503", status=503)
        return await super().submit(text, language)


@pytest.fixture
def audio_config(tmp_path):
    """
    AudioConfig with mock provider and zero poll/backoff delays.

    Storage lives in a per-test temporary directory.
    """
    return AudioConfig(
        provider="mock",
        generated_dir=str(tmp_path / "generated"),
        generation_retries=3,
        retry_backoff=0.0,
        poll_interval=0.0,
        poll_max_attempts=5,
        min_audio_bytes=1000,
        resolver_cache_size=8,
    )


@pytest.fixture
def asset_store(audio_config):
    return LocalAssetStore(audio_config.generated_dir, min_bytes=audio_config.min_audio_bytes)


@pytest.fixture
def mock_provider():
    return MockGenerationProvider()


@pytest.fixture
def fake_sleep():
    """Sleep stand-in recording requested delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def generation_client(mock_provider, audio_config, fake_sleep):
    return GenerationJobClient(mock_provider, audio_config, sleep=fake_sleep)


@pytest.fixture
def sample_items():
    return [
        ContentItem(
            content_id=1,
            text="สวัสดี",
            example="สวัสดีครับ",
            pronunciation="sa-wat-dee",
            translation="你好",
            example_translation="你好（男性用语）",
        ),
        ContentItem(
            content_id=2,
            text="ขอบคุณ",
            example="ขอบคุณมาก",
            pronunciation="khop-khun",
            translation="谢谢",
            example_translation="非常感谢",
        ),
        ContentItem(
            content_id=3,
            text="น้ำ",
            example="ขอน้ำหนึ่งแก้ว",
            pronunciation="naam",
            translation="水",
            example_translation="请给我一杯水",
        ),
    ]


@pytest.fixture
def catalog(sample_items):
    return InMemoryCatalog(sample_items)


@pytest.fixture
def resolver(catalog, asset_store, generation_client, audio_config):
    return AudioResolver(catalog, asset_store, generation_client, audio_config, speech_available=lambda: True)


@pytest.fixture
def sample_mp3():
    """5 KB of silent MP3 frames (above the minimum-size threshold)."""
    return silent_mp3(5 * 1024)


# Test markers
def pytest_configure(config):
    """
    Register custom test markers.
    """
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (components wired together)"
    )

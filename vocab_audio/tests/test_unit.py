"""
Unit Tests for the Vocabulary Audio Service

Tests core functionality without network or audio devices:
    - AudioConfig validation and environment loading
    - Asset path mapping and filename parsing
    - LocalAssetStore writes, slot replacement and size validation
    - Resolver LRU cache
    - Catalog records and card image rendering

Run with:
    pytest vocab_audio/tests/test_unit.py -v
    pytest vocab_audio/tests/test_unit.py -v -m unit
"""

import json

import pytest

from vocab_audio.asset_paths import (
    asset_path,
    check_filename,
    parse_asset_filename,
    slot_prefix,
)
from vocab_audio.asset_store import LocalAssetStore
from vocab_audio.card_images import render_card_svg
from vocab_audio.catalog import InMemoryCatalog, recorded_asset
from vocab_audio.config import AudioConfig
from vocab_audio.errors import AssetPathError, CorruptAsset
from vocab_audio.models import AssetKind, ContentItem, LocalFile, RemoteStream
from vocab_audio.resolver import SourceCache, strip_storage_prefix


@pytest.mark.unit
class TestAudioConfig:
    """Test AudioConfig validation and environment loading."""

    def test_default_values(self):
        config = AudioConfig()

        assert config.provider == "soundoftext"
        assert config.provider_base_url == "https://api.soundoftext.com"
        assert config.default_language == "th-TH"
        assert config.generation_retries == 3
        assert config.retry_backoff == 2.0
        assert config.poll_interval == 2.0
        assert config.poll_max_attempts == 20
        assert config.min_audio_bytes == 1000
        assert config.write_fallback_markers is True
        assert config.catalog_path is None

    def test_provider_validation(self):
        for provider in ["soundoftext", "mock"]:
            assert AudioConfig(provider=provider).provider == provider

        with pytest.raises(ValueError, match="Invalid provider"):
            AudioConfig(provider="elevenlabs")

    def test_budgets_must_be_positive(self):
        with pytest.raises(ValueError, match="generation_retries"):
            AudioConfig(generation_retries=0)
        with pytest.raises(ValueError, match="poll_max_attempts"):
            AudioConfig(poll_max_attempts=0)
        with pytest.raises(ValueError, match="resolver_cache_size"):
            AudioConfig(resolver_cache_size=0)
        with pytest.raises(ValueError, match="must not be negative"):
            AudioConfig(retry_backoff=-1.0)

    def test_speech_rate_is_clamped(self):
        assert AudioConfig(speech_rate=20.0).speech_rate == 10.0
        assert AudioConfig(speech_rate=0.01).speech_rate == 0.1
        assert AudioConfig(speech_rate=0.9).speech_rate == 0.9

    def test_trailing_slashes_stripped(self):
        config = AudioConfig(provider_base_url="https://api.example.com/", proxy_download_prefix="/dl/")
        assert config.provider_base_url == "https://api.example.com"
        assert config.proxy_download_prefix == "/dl"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VOCAB_AUDIO_PROVIDER", "mock")
        monkeypatch.setenv("VOCAB_AUDIO_RETRIES", "5")
        monkeypatch.setenv("VOCAB_AUDIO_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("VOCAB_AUDIO_MIN_BYTES", "2048")
        monkeypatch.setenv("VOCAB_AUDIO_FALLBACK_MARKERS", "false")
        monkeypatch.setenv("VOCAB_AUDIO_CATALOG", "/data/cards.json")

        config = AudioConfig.from_env()

        assert config.provider == "mock"
        assert config.generation_retries == 5
        assert config.poll_interval == 0.5
        assert config.min_audio_bytes == 2048
        assert config.write_fallback_markers is False
        assert config.catalog_path == "/data/cards.json"


@pytest.mark.unit
class TestAssetPaths:
    """Test canonical asset path mapping."""

    def test_audio_paths(self):
        assert asset_path(42, AssetKind.WORD, timestamp_ms=1700000000000) == "audio/word_42_1700000000000.mp3"
        assert asset_path(42, AssetKind.EXAMPLE, timestamp_ms=5) == "audio/example_42_5.mp3"
        assert asset_path(42, AssetKind.WORD, timestamp_ms=5, extension="json") == "audio/word_42_5.json"

    def test_image_path(self):
        assert asset_path(42, AssetKind.IMAGE, timestamp_ms=5) == "images/card_42_5.svg"

    def test_default_timestamp_is_current(self):
        path = asset_path(3, AssetKind.WORD)
        parsed = parse_asset_filename(path.split("/")[-1])
        assert parsed.content_id == 3
        assert parsed.timestamp_ms > 1600000000000

    def test_invalid_extensions(self):
        with pytest.raises(AssetPathError):
            asset_path(1, AssetKind.IMAGE, extension="mp3")
        with pytest.raises(AssetPathError):
            asset_path(1, AssetKind.WORD, extension="wav")

    def test_parse_filename(self):
        parsed = parse_asset_filename("example_7_123.mp3")
        assert parsed.kind == AssetKind.EXAMPLE
        assert parsed.content_id == 7
        assert parsed.timestamp_ms == 123
        assert parsed.extension == "mp3"

        with pytest.raises(AssetPathError):
            parse_asset_filename("card_7_1.mp3")
        with pytest.raises(AssetPathError):
            parse_asset_filename("notes.txt")

    def test_check_filename(self):
        assert check_filename("word_1_1.mp3") == "word_1_1.mp3"
        for bad in ["", ".", "..", "../word_1_1.mp3", "a/b.mp3", "a\\b.mp3", "a\x00.mp3"]:
            with pytest.raises(AssetPathError):
                check_filename(bad)

    def test_slot_prefix(self):
        assert slot_prefix(5, AssetKind.WORD) == "word_5_"
        assert slot_prefix(5, AssetKind.IMAGE) == "card_5_"

    def test_prefix_stripping(self):
        assert strip_storage_prefix("generated/audio/word_1_1.mp3") == "audio/word_1_1.mp3"


@pytest.mark.unit
class TestLocalAssetStore:
    """Test LocalAssetStore operations."""

    def test_write_and_read(self, asset_store, sample_mp3):
        record = asset_store.write_asset(1, AssetKind.WORD, sample_mp3)

        assert record.storage_path.startswith("audio/word_1_")
        assert record.size_bytes == len(sample_mp3)
        assert asset_store.exists(record.storage_path)
        assert asset_store.read(record.storage_path) == sample_mp3

    def test_under_size_file_treated_as_missing(self, asset_store):
        asset_store.write("audio/word_1_1.mp3", b"\x00" * 1000)

        assert asset_store.exists("audio/word_1_1.mp3") is False
        with pytest.raises(CorruptAsset):
            asset_store.read("audio/word_1_1.mp3")
        assert asset_store.rejected == 2

    def test_missing_file(self, asset_store):
        assert asset_store.exists("audio/word_9_1.mp3") is False
        with pytest.raises(FileNotFoundError):
            asset_store.read("audio/word_9_1.mp3")

    def test_write_asset_rejects_small_audio(self, asset_store):
        with pytest.raises(CorruptAsset):
            asset_store.write_asset(1, AssetKind.WORD, b"\x00" * 10)
        assert asset_store.find_asset(1, AssetKind.WORD) is None

    def test_small_card_image_is_valid(self, asset_store):
        record = asset_store.write_asset(1, AssetKind.IMAGE, b"<svg></svg>")

        assert asset_store.exists(record.storage_path)
        assert asset_store.read(record.storage_path) == b"<svg></svg>"
        assert asset_store.find_asset(1, AssetKind.IMAGE) == record
        assert asset_store.rejected == 0

    def test_write_replaces_slot(self, asset_store, sample_mp3):
        example = asset_store.write_asset(1, AssetKind.EXAMPLE, sample_mp3, timestamp_ms=1)
        other = asset_store.write_asset(10, AssetKind.WORD, sample_mp3, timestamp_ms=1)
        first = asset_store.write_asset(1, AssetKind.WORD, sample_mp3, timestamp_ms=1)
        second = asset_store.write_asset(1, AssetKind.WORD, sample_mp3, timestamp_ms=2)

        audio_dir = asset_store.base_dir / "audio"
        word_files = sorted(p.name for p in audio_dir.glob("word_1_*"))
        assert word_files == ["word_1_2.mp3"]
        assert not asset_store.exists(first.storage_path)
        assert asset_store.exists(second.storage_path)
        assert asset_store.exists(example.storage_path)
        assert asset_store.exists(other.storage_path)

    def test_no_temp_files_left_behind(self, asset_store, sample_mp3):
        asset_store.write_asset(1, AssetKind.WORD, sample_mp3)
        leftovers = list((asset_store.base_dir / "audio").glob(".*.tmp"))
        assert leftovers == []

    def test_paths_cannot_escape_root(self, asset_store):
        with pytest.raises(AssetPathError):
            asset_store.read("../outside.mp3")
        with pytest.raises(AssetPathError):
            asset_store.exists("/etc/passwd")

    def test_fallback_marker(self, asset_store):
        record = asset_store.write_fallback_marker(1, AssetKind.WORD, "สวัสดี", "th-TH")

        assert record.storage_path.endswith(".json")
        assert asset_store.exists(record.storage_path)
        marker = asset_store.read_marker(record.storage_path)
        assert marker["type"] == "tts_fallback"
        assert marker["text"] == "สวัสดี"
        assert marker["language"] == "th-TH"

    def test_find_asset_returns_newest_valid(self, asset_store, sample_mp3):
        audio_dir = asset_store.base_dir / "audio"
        audio_dir.mkdir(parents=True)
        (audio_dir / "word_1_1.mp3").write_bytes(sample_mp3)
        (audio_dir / "word_1_2.mp3").write_bytes(b"\x00" * 10)

        record = asset_store.find_asset(1, AssetKind.WORD)

        assert record is not None
        assert record.storage_path == "audio/word_1_1.mp3"

    def test_remove_slot(self, asset_store, sample_mp3):
        asset_store.write_asset(1, AssetKind.WORD, sample_mp3)
        assert asset_store.remove_slot(1, AssetKind.WORD) == 1
        assert asset_store.remove_slot(1, AssetKind.WORD) == 0
        assert asset_store.find_asset(1, AssetKind.WORD) is None

    def test_stats(self, asset_store, sample_mp3):
        asset_store.write_asset(1, AssetKind.WORD, sample_mp3)
        asset_store.write_fallback_marker(2, AssetKind.WORD, "น้ำ", "th-TH")
        asset_store.write_asset(1, AssetKind.IMAGE, b"<svg/>")

        stats = asset_store.get_stats()
        assert stats["audio_files"] == 1
        assert stats["fallback_markers"] == 1
        assert stats["image_files"] == 1
        assert stats["writes"] == 3

    def test_directories_created_lazily(self, tmp_path):
        store = LocalAssetStore(str(tmp_path / "lazy"))
        assert not (tmp_path / "lazy").exists()
        assert store.exists("audio/word_1_1.mp3") is False


@pytest.mark.unit
class TestSourceCache:
    """Test resolver LRU behaviour."""

    def test_least_recently_used_is_evicted(self):
        cache = SourceCache(max_size=2)
        cache.put((None, AssetKind.WORD, "a", "th-TH"), RemoteStream("/api/audio/download/a"))
        cache.put((None, AssetKind.WORD, "b", "th-TH"), RemoteStream("/api/audio/download/b"))
        assert cache.get((None, AssetKind.WORD, "a", "th-TH")) is not None

        cache.put((None, AssetKind.WORD, "c", "th-TH"), LocalFile("audio/word_1_1.mp3"))

        assert len(cache) == 2
        assert cache.get((None, AssetKind.WORD, "b", "th-TH")) is None
        assert cache.get((None, AssetKind.WORD, "a", "th-TH")) == RemoteStream("/api/audio/download/a")
        assert cache.evictions == 1
        assert cache.hits == 2
        assert cache.misses == 1


@pytest.mark.unit
class TestCatalog:
    """Test InMemoryCatalog."""

    def test_from_records(self):
        catalog = InMemoryCatalog.from_records([
            {"id": 5, "thai": "สวัสดี", "chinese": "你好", "example": "สวัสดีครับ"},
            {"thai": "น้ำ", "chinese": "水", "example": "ขอน้ำ"},
        ])

        assert len(catalog) == 2

    @pytest.mark.asyncio
    async def test_from_json_file(self, tmp_path):
        path = tmp_path / "cards.json"
        path.write_text(json.dumps({"cards": [
            {"id": 42, "thai": "สวัสดี", "chinese": "你好", "example": "สวัสดีครับ",
             "word_audio": "generated/audio/word_42_1.mp3"},
        ]}, ensure_ascii=False), encoding="utf-8")

        catalog = InMemoryCatalog.from_json_file(str(path))
        item = await catalog.get_item(42)

        assert item.text == "สวัสดี"
        assert item.translation == "你好"
        assert item.word_audio == "generated/audio/word_42_1.mp3"

    @pytest.mark.asyncio
    async def test_update_assets(self, catalog):
        updated = await catalog.update_assets(1, word_audio="audio/word_1_9.mp3")

        assert updated.word_audio == "audio/word_1_9.mp3"
        assert updated.example_audio is None
        assert (await catalog.get_item(1)).word_audio == "audio/word_1_9.mp3"
        assert await catalog.update_assets(999, word_audio="x") is None

    def test_recorded_asset_requires_matching_text(self):
        item = ContentItem(1, "สวัสดี", "สวัสดีครับ", word_audio="audio/word_1_1.mp3")

        assert recorded_asset(item, AssetKind.WORD, "สวัสดี") == "audio/word_1_1.mp3"
        assert recorded_asset(item, AssetKind.WORD, "ขอบคุณ") is None
        assert recorded_asset(item, AssetKind.EXAMPLE, "สวัสดีครับ") is None


@pytest.mark.unit
class TestCardImages:
    """Test SVG card rendering."""

    def test_fields_rendered_and_escaped(self):
        item = ContentItem(1, "<b>&", "ex", pronunciation="p", translation="你好")

        svg = render_card_svg(item).decode("utf-8")

        assert svg.startswith("<svg")
        assert "&lt;b&gt;&amp;" in svg
        assert "你好" in svg
        assert 'width="800"' in svg

"""
Batch Export Pipeline

Builds one zip archive for a list of catalog items:

    <prefix>_<YYYY-MM-DD>.zip
        ├── images/card_<n>_<text>.svg          - always
        └── audio/card_<n>_example_<text>.mp3   - best effort

Items are processed sequentially so provider rate limits and progress
reporting stay predictable. Progress is reported after every sub-step
(two per item). An item whose audio fails keeps its image; the failure is
collected into the result summary instead of aborting the batch.
"""

import io
import logging
import re
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .asset_store import LocalAssetStore
from .card_images import render_card_svg
from .config import AudioConfig
from .errors import AudioPipelineError, ProviderUnavailable
from .generation_client import GenerationJobClient
from .models import (
    AssetKind,
    AudioRequest,
    AudioSource,
    ContentItem,
    ExportEntry,
    ExportManifest,
    ExportProgress,
    ExportResult,
    LocalFile,
    ProgressCallback,
    RemoteStream,
)
from .resolver import AudioResolver

logger = logging.getLogger(__name__)

# Path separators, reserved characters and controls; Thai combining marks are kept
SANITIZE_PATTERN = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def safe_name(text: str, limit: int = 40) -> str:
    cleaned = SANITIZE_PATTERN.sub("_", text).strip(" ._")
    return cleaned[:limit] or "item"


class AudioFetcher:
    """Turns a resolved source into audio bytes (None for speech-only sources)."""

    def __init__(self, store: LocalAssetStore, generator: GenerationJobClient, config: AudioConfig):
        self.store = store
        self.generator = generator
        self.proxy_prefix = config.proxy_download_prefix + "/"

    async def fetch(self, source: AudioSource) -> Optional[bytes]:
        if isinstance(source, LocalFile):
            return self.store.read(source.path)
        if isinstance(source, RemoteStream):
            if not source.url.startswith(self.proxy_prefix):
                raise ProviderUnavailable(f"Unsupported stream location: {source.url}")
            job_id = source.url[len(self.proxy_prefix):]
            return await self.generator.fetch_finished(job_id)
        return None


class BatchExportPipeline:
    """
    Sequential image + example-audio export.

    Args:
        resolver: Audio resolver used for each item's example audio
        fetcher: Converts resolved sources to bytes
        config: Audio configuration (language, archive prefix)
    """

    def __init__(self, resolver: AudioResolver, fetcher: AudioFetcher, config: AudioConfig):
        self.resolver = resolver
        self.fetcher = fetcher
        self.config = config

    async def export_batch(
        self,
        items: Sequence[ContentItem],
        on_progress: Optional[ProgressCallback] = None,
        language: Optional[str] = None,
    ) -> ExportResult:
        """
        Export images and example audio for `items` into one archive.

        Args:
            items: Catalog items in archive order
            on_progress: Called with ExportProgress after each sub-step
            language: Language tag for audio (defaults to config)

        Returns:
            ExportResult with archive bytes, filename, entries and failures
        """
        language = language or self.config.default_language
        manifest = ExportManifest(progress=ExportProgress(0, len(items) * 2, ""))
        failures: Dict[int, str] = {}

        def report(message: str):
            manifest.progress.status_message = message
            if on_progress is not None:
                on_progress(ExportProgress(manifest.progress.current, manifest.progress.total, message))

        logger.info(f" Exporting {len(items)} cards")

        for index, item in enumerate(items, 1):
            report(f"Generating card {index} image...")
            image_blob = render_card_svg(item)
            manifest.progress.current += 1
            report(f"Card {index} image done")

            report(f"Generating card {index} example audio...")
            audio_blob, error = await self._example_audio(item, language)
            manifest.progress.current += 1
            if error:
                failures[item.content_id] = error
                logger.error(f"Failed to generate example audio for card {index}: {error}")
                report(f"Card {index} example audio failed")
            else:
                report(f"Card {index} example audio done")

            manifest.entries.append(ExportEntry(item=item, image_blob=image_blob, audio_blob=audio_blob, error=error))

        report("Packing files...")
        archive = self._build_archive(manifest.entries)
        filename = f"{self.config.export_archive_prefix}_{datetime.now(timezone.utc).date().isoformat()}.zip"
        report("Download complete!")

        result = ExportResult(archive_bytes=archive, filename=filename, entries=manifest.entries, failures=failures)
        logger.info(
            f" Export finished: {result.image_count} images, {result.audio_count} audio, "
            f"{len(failures)} failed ({len(archive)} bytes)"
        )
        return result

    async def _example_audio(self, item: ContentItem, language: str):
        if not item.example.strip():
            return None, "No example text"
        request = AudioRequest(
            text=item.example,
            language=language,
            content_id=item.content_id,
            kind=AssetKind.EXAMPLE,
        )
        try:
            source = await self.resolver.resolve(request)
            blob = await self.fetcher.fetch(source)
        except (AudioPipelineError, OSError, ValueError) as e:
            return None, str(e) or type(e).__name__
        if blob is None:
            return None, "Audio unavailable, speech synthesis only"
        return blob, None

    def _build_archive(self, entries: List[ExportEntry]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, entry in enumerate(entries, 1):
                label = safe_name(entry.item.text)
                archive.writestr(f"images/card_{index}_{label}.svg", entry.image_blob)
                if entry.audio_blob is not None:
                    archive.writestr(f"audio/card_{index}_example_{label}.mp3", entry.audio_blob)
        return buffer.getvalue()


def write_archive(result: ExportResult, out_dir: str) -> Path:
    """Write an export archive to `out_dir` under its conventional filename."""
    target_dir = Path(out_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / result.filename
    target.write_bytes(result.archive_bytes)
    return target

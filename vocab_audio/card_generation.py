"""
Card Generation Service

Server-side batch generation behind POST /api/cards/generate. For each
requested content id, sequentially:

    1. Delete the previously generated word/example audio
    2. Generate word audio and example audio (each failure is recorded,
       neither aborts the card)
    3. Render a fresh card image
    4. Record the new asset paths in the catalog

A card succeeds only if both audio files were generated. When audio
generation fails and fallback markers are enabled, a JSON marker is stored
in the audio slot so clients switch to local speech synthesis.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .asset_store import LocalAssetStore
from .card_images import render_card_svg
from .catalog import Catalog
from .config import AudioConfig
from .errors import AudioPipelineError
from .generation_client import GenerationJobClient
from .models import AssetKind, ContentItem

logger = logging.getLogger(__name__)


@dataclass
class CardGenerationResult:
    content_id: int
    success: bool
    word_audio: Optional[str] = None
    example_audio: Optional[str] = None
    card_image: Optional[str] = None
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"contentId": self.content_id, "success": self.success}
        if self.word_audio:
            payload["wordAudio"] = self.word_audio
        if self.example_audio:
            payload["exampleAudio"] = self.example_audio
        if self.card_image:
            payload["cardImage"] = self.card_image
        if self.error:
            payload["error"] = self.error
        if self.errors:
            payload["errors"] = self.errors
        return payload


class CardGenerationService:
    """Regenerates audio and images for catalog items."""

    def __init__(
        self,
        catalog: Catalog,
        store: LocalAssetStore,
        generator: GenerationJobClient,
        config: AudioConfig,
    ):
        self.catalog = catalog
        self.store = store
        self.generator = generator
        self.config = config

    async def generate_cards(self, content_ids: Iterable[int], language: Optional[str] = None) -> List[CardGenerationResult]:
        language = language or self.config.default_language
        results: List[CardGenerationResult] = []

        for content_id in content_ids:
            item = await self.catalog.get_item(content_id)
            if item is None:
                results.append(CardGenerationResult(content_id, False, error="Card not found"))
                continue
            try:
                results.append(await self._generate_card(item, language))
            except (OSError, AudioPipelineError, ValueError) as e:
                logger.error(f"Error generating files for card {content_id}: {e}", exc_info=True)
                results.append(CardGenerationResult(content_id, False, error=str(e)))

        succeeded = sum(1 for result in results if result.success)
        logger.info(f" Card generation finished: {succeeded}/{len(results)} complete")
        return results

    async def _generate_card(self, item: ContentItem, language: str) -> CardGenerationResult:
        content_id = item.content_id
        for kind in (AssetKind.WORD, AssetKind.EXAMPLE):
            self.store.remove_slot(content_id, kind)

        word_path, word_error = await self._generate_audio(item, AssetKind.WORD, language)
        example_path, example_error = await self._generate_audio(item, AssetKind.EXAMPLE, language)

        image = self.store.write_asset(content_id, AssetKind.IMAGE, render_card_svg(item))

        # Old audio is gone; an empty path clears a slot that got nothing new
        await self.catalog.update_assets(
            content_id,
            word_audio=word_path or "",
            example_audio=example_path or "",
            card_image=image.storage_path,
        )

        errors = [message for message in (word_error, example_error) if message]
        logger.info(
            f" Updated card {content_id} - Word: {word_path if not word_error else 'FAILED'}, "
            f"Example: {example_path if not example_error else 'FAILED'}"
        )
        return CardGenerationResult(
            content_id=content_id,
            success=not errors,
            word_audio=word_path if not word_error else None,
            example_audio=example_path if not example_error else None,
            card_image=image.storage_path,
            errors=errors,
        )

    async def _generate_audio(self, item: ContentItem, kind: AssetKind, language: str) -> Tuple[Optional[str], Optional[str]]:
        label = "Word" if kind == AssetKind.WORD else "Example"
        text = item.text_for(kind)
        if not text.strip():
            return None, f"{label} audio: no text"

        try:
            generated = await self.generator.generate(text, language)
            record = self.store.write_asset(item.content_id, kind, generated.payload)
            return record.storage_path, None
        except AudioPipelineError as e:
            logger.error(f"Failed to generate {kind.value} audio for card {item.content_id}: {e}")
            if not self.config.write_fallback_markers:
                return None, f"{label} audio: {e}"
            marker = self.store.write_fallback_marker(item.content_id, kind, text, language)
            return marker.storage_path, f"{label} audio: {e}"

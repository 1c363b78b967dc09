"""
Local Asset Store

Reads and writes generated audio and card images under a fixed layout:

    generated_dir/
        ├── audio/
        │   ├── word_<id>_<ts>.mp3      - Generated word audio
        │   ├── example_<id>_<ts>.mp3   - Generated example audio
        │   └── word_<id>_<ts>.json     - Speech-synthesis fallback marker
        └── images/
            └── card_<id>_<ts>.svg      - Card image

Guarantees:
    - Directories are created lazily before the first write
    - Writes replace the whole (content id, kind) slot: every older file of
      the slot is deleted, then the new file is written to a temp file and
      renamed into place, so readers never observe a truncated file
    - Audio files at or below `min_bytes` are treated as missing
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from .asset_paths import asset_path, parse_asset_filename, slot_prefix, IMAGE_DIR, AUDIO_DIR
from .errors import AssetPathError, CorruptAsset
from .models import AssetKind, AssetRecord

logger = logging.getLogger(__name__)

MARKER_EXTENSION = ".json"


class LocalAssetStore:
    """
    File-backed store for generated assets.

    All paths are relative to `base_dir` (e.g. "audio/word_42_1700000000000.mp3").
    Absolute paths and paths that climb out of `base_dir` are rejected.
    """

    def __init__(self, base_dir: str, min_bytes: int = 1000):
        """
        Initialize the asset store.

        Args:
            base_dir: Root directory for generated assets
            min_bytes: Files of this size or smaller are treated as corrupt
        """
        self.base_dir = Path(base_dir).resolve()
        self.min_bytes = min_bytes
        self.writes = 0
        self.removals = 0
        self.rejected = 0

        logger.info(f" Asset store initialized: {self.base_dir} (min_bytes={min_bytes})")

    def _resolve(self, path: str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            raise AssetPathError(f"Asset paths must be relative: {path}")
        full = (self.base_dir / candidate).resolve()
        if full != self.base_dir and self.base_dir not in full.parents:
            raise AssetPathError(f"Asset path escapes storage root: {path}")
        return full

    def _ensure_dir(self, directory: Path):
        directory.mkdir(parents=True, exist_ok=True)

    def _is_marker(self, full: Path) -> bool:
        return full.suffix == MARKER_EXTENSION

    def _valid_size(self, full: Path, size: int) -> bool:
        # Only audio has a minimum size; markers and card images just need content
        if self._is_marker(full) or full.suffix == ".svg":
            return size > 0
        return size > self.min_bytes

    def _size(self, full: Path) -> Optional[int]:
        try:
            return full.stat().st_size
        except FileNotFoundError:
            return None

    def exists(self, path: str) -> bool:
        """True if the file exists and passes the minimum-size check."""
        full = self._resolve(path)
        size = self._size(full)
        if size is None:
            return False
        if not self._valid_size(full, size):
            logger.warning(f" Asset too small, treating as missing: {path} ({size} bytes)")
            self.rejected += 1
            return False
        return True

    def size(self, path: str) -> Optional[int]:
        return self._size(self._resolve(path))

    def read(self, path: str) -> bytes:
        """
        Read a stored asset.

        Raises:
            FileNotFoundError: If the file does not exist
            CorruptAsset: If the file fails the minimum-size check
        """
        full = self._resolve(path)
        data = full.read_bytes()
        if not self._valid_size(full, len(data)):
            self.rejected += 1
            raise CorruptAsset(len(data), self.min_bytes, source=path)
        return data

    def write(self, path: str, data: bytes) -> int:
        """
        Write an asset atomically.

        If `path` names a generated asset, every other file of the same
        (content id, kind) slot is deleted first.

        Returns:
            Number of bytes written
        """
        full = self._resolve(path)
        self._ensure_dir(full.parent)

        try:
            parsed = parse_asset_filename(full.name)
        except AssetPathError:
            parsed = None
        if parsed is not None:
            self._remove_slot_files(full.parent, slot_prefix(parsed.content_id, parsed.kind), keep=full)

        if full.exists():
            full.unlink()

        temp_file = full.with_name(f".{full.name}.{os.getpid()}.tmp")
        try:
            temp_file.write_bytes(data)
            temp_file.replace(full)
        except OSError:
            if temp_file.exists():
                temp_file.unlink()
            raise

        self.writes += 1
        logger.debug(f" Wrote asset {path} ({len(data)} bytes)")
        return len(data)

    def remove(self, path: str) -> bool:
        """Delete an asset. Returns False if it did not exist."""
        full = self._resolve(path)
        try:
            full.unlink()
        except FileNotFoundError:
            return False
        self.removals += 1
        logger.info(f" Deleted old asset: {path}")
        return True

    def _remove_slot_files(self, directory: Path, prefix: str, keep: Optional[Path] = None) -> int:
        if not directory.exists():
            return 0
        removed = 0
        for existing in directory.glob(f"{prefix}*"):
            if keep is not None and existing == keep:
                continue
            if existing.name.startswith("."):
                continue
            try:
                existing.unlink()
                removed += 1
                self.removals += 1
                logger.info(f" Deleted old asset: {existing.name}")
            except FileNotFoundError:
                pass
        return removed

    def _slot_dir(self, kind: AssetKind) -> Path:
        return self.base_dir / (IMAGE_DIR if kind == AssetKind.IMAGE else AUDIO_DIR)

    def remove_slot(self, content_id: int, kind: AssetKind) -> int:
        """Delete every stored file for (content id, kind)."""
        return self._remove_slot_files(self._slot_dir(kind), slot_prefix(content_id, kind))

    def write_asset(
        self,
        content_id: int,
        kind: AssetKind,
        data: bytes,
        extension: Optional[str] = None,
        timestamp_ms: Optional[int] = None,
    ) -> AssetRecord:
        """
        Store a freshly generated asset at its canonical path.

        Raises:
            CorruptAsset: If audio data fails the minimum-size check
        """
        path = asset_path(content_id, kind, timestamp_ms=timestamp_ms, extension=extension)
        if kind != AssetKind.IMAGE and not path.endswith(MARKER_EXTENSION) and len(data) <= self.min_bytes:
            raise CorruptAsset(len(data), self.min_bytes, source=path)
        size = self.write(path, data)
        return AssetRecord(content_id=content_id, kind=kind, storage_path=path, size_bytes=size)

    def write_fallback_marker(self, content_id: int, kind: AssetKind, text: str, language: str) -> AssetRecord:
        """Write a JSON marker telling clients to use local speech synthesis."""
        payload = {
            "type": "tts_fallback",
            "text": text,
            "language": language,
            "created": time.time(),
        }
        data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        return self.write_asset(content_id, kind, data, extension="json")

    def read_marker(self, path: str) -> Dict[str, Any]:
        return json.loads(self.read(path).decode("utf-8"))

    def find_asset(self, content_id: int, kind: AssetKind) -> Optional[AssetRecord]:
        """Newest valid file for (content id, kind), or None."""
        directory = self._slot_dir(kind)
        if not directory.exists():
            return None
        candidates: List[tuple] = []
        for existing in directory.glob(f"{slot_prefix(content_id, kind)}*"):
            try:
                parsed = parse_asset_filename(existing.name)
            except AssetPathError:
                continue
            candidates.append((parsed.timestamp_ms, existing))
        for _, existing in sorted(candidates, reverse=True):
            relative = existing.relative_to(self.base_dir).as_posix()
            if self.exists(relative):
                return AssetRecord(content_id, kind, relative, existing.stat().st_size)
        return None

    def get_stats(self) -> Dict[str, Any]:
        audio_dir = self.base_dir / AUDIO_DIR
        image_dir = self.base_dir / IMAGE_DIR
        return {
            "base_dir": str(self.base_dir),
            "audio_files": len(list(audio_dir.glob("*.mp3"))) if audio_dir.exists() else 0,
            "fallback_markers": len(list(audio_dir.glob("*.json"))) if audio_dir.exists() else 0,
            "image_files": len(list(image_dir.glob("*.svg"))) if image_dir.exists() else 0,
            "writes": self.writes,
            "removals": self.removals,
            "rejected": self.rejected,
        }

"""
Canonical storage paths for generated assets.

Layout (relative to the generated root):
    audio/<kind>_<contentId>_<timestamp>.<mp3|json>
    images/card_<contentId>_<timestamp>.svg

`.json` audio files are speech-fallback markers, `.mp3` files are real audio.
"""

import re
import time
from typing import NamedTuple, Optional

from .errors import AssetPathError
from .models import AssetKind

AUDIO_DIR = "audio"
IMAGE_DIR = "images"
AUDIO_EXTENSIONS = ("mp3", "json")

_FILENAME_RE = re.compile(r"^(word|example|card)_(\d+)_(\d+)\.(mp3|json|svg)$")


class ParsedAssetName(NamedTuple):
    kind: AssetKind
    content_id: int
    timestamp_ms: int
    extension: str


def _now_ms() -> int:
    return int(time.time() * 1000)


def slot_prefix(content_id: int, kind: AssetKind) -> str:
    """Filename prefix shared by every file of one (content id, kind) slot."""
    label = "card" if kind == AssetKind.IMAGE else kind.value
    return f"{label}_{int(content_id)}_"


def asset_filename(
    content_id: int,
    kind: AssetKind,
    timestamp_ms: Optional[int] = None,
    extension: Optional[str] = None,
) -> str:
    if extension is None:
        extension = "svg" if kind == AssetKind.IMAGE else "mp3"
    if kind == AssetKind.IMAGE and extension != "svg":
        raise AssetPathError(f"Card images are stored as svg, not {extension}")
    if kind != AssetKind.IMAGE and extension not in AUDIO_EXTENSIONS:
        raise AssetPathError(f"Unsupported audio extension: {extension}")
    stamp = _now_ms() if timestamp_ms is None else int(timestamp_ms)
    return f"{slot_prefix(content_id, kind)}{stamp}.{extension}"


def asset_path(
    content_id: int,
    kind: AssetKind,
    timestamp_ms: Optional[int] = None,
    extension: Optional[str] = None,
) -> str:
    """
    Map (content id, kind) to its canonical relative storage path.

    Args:
        content_id: Catalog identifier
        kind: word / example audio, or image
        timestamp_ms: Epoch milliseconds (defaults to now)
        extension: mp3 or json for audio, svg for images

    Returns:
        Relative path such as "audio/word_42_1700000000000.mp3"
    """
    folder = IMAGE_DIR if kind == AssetKind.IMAGE else AUDIO_DIR
    return f"{folder}/{asset_filename(content_id, kind, timestamp_ms, extension)}"


def parse_asset_filename(filename: str) -> ParsedAssetName:
    match = _FILENAME_RE.match(filename)
    if not match:
        raise AssetPathError(f"Not a generated asset filename: {filename!r}")
    label, content_id, stamp, extension = match.groups()
    kind = AssetKind.IMAGE if label == "card" else AssetKind(label)
    if (kind == AssetKind.IMAGE) != (extension == "svg"):
        raise AssetPathError(f"Extension {extension} does not match kind {kind.value}")
    return ParsedAssetName(kind, int(content_id), int(stamp), extension)


def check_filename(filename: str) -> str:
    """Reject names that could escape their directory."""
    if not filename or "/" in filename or "\\" in filename or filename in (".", "..") or "\x00" in filename:
        raise AssetPathError(f"Invalid filename: {filename!r}")
    return filename

"""
Data Model for the Audio Pipeline

Request, job, asset and export types shared by every component.
Plain dataclasses; requests and sources are immutable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import ResolutionCancelled


class AssetKind(str, Enum):
    WORD = "word"
    EXAMPLE = "example"
    IMAGE = "image"


class JobStatus(str, Enum):
    """Provider job states (values match the provider wire format)."""
    PENDING = "Pending"
    DONE = "Done"
    ERROR = "Error"


@dataclass(frozen=True)
class AudioRequest:
    """One play/generate call."""
    text: str
    language: str
    content_id: Optional[int] = None
    kind: AssetKind = AssetKind.WORD


@dataclass
class GenerationJob:
    """
    State of one provider generation job.

    Mutated only by the polling loop in GenerationJobClient. DONE and ERROR
    are terminal.
    """
    id: str
    status: JobStatus = JobStatus.PENDING
    result_location: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.DONE, JobStatus.ERROR)

    def mark_error(self, reason: str) -> None:
        self.status = JobStatus.ERROR
        self.error = reason


@dataclass
class AssetRecord:
    content_id: int
    kind: AssetKind
    storage_path: str
    size_bytes: int


@dataclass(frozen=True)
class LocalFile:
    path: str


@dataclass(frozen=True)
class RemoteStream:
    url: str


@dataclass(frozen=True)
class SynthesizedSpeech:
    text: str
    language: str


AudioSource = Union[LocalFile, RemoteStream, SynthesizedSpeech]


@dataclass
class PlaybackSession:
    """Process-wide playback state; mutated only by PlaybackController."""
    active_handle: Optional[Any] = None


@dataclass
class GeneratedAudio:
    """Finished generation: terminal job plus the validated payload."""
    job: GenerationJob
    payload: bytes


@dataclass
class ContentItem:
    """Catalog view of one vocabulary item."""
    content_id: int
    text: str
    example: str
    pronunciation: str = ""
    translation: str = ""
    example_translation: str = ""
    word_audio: Optional[str] = None
    example_audio: Optional[str] = None
    card_image: Optional[str] = None

    def text_for(self, kind: AssetKind) -> str:
        return self.example if kind == AssetKind.EXAMPLE else self.text

    def asset_path_for(self, kind: AssetKind) -> Optional[str]:
        if kind == AssetKind.WORD:
            return self.word_audio
        if kind == AssetKind.EXAMPLE:
            return self.example_audio
        return self.card_image


@dataclass
class ExportProgress:
    current: int
    total: int
    status_message: str


ProgressCallback = Callable[[ExportProgress], None]


@dataclass
class ExportEntry:
    item: ContentItem
    image_blob: bytes
    audio_blob: Optional[bytes] = None
    error: Optional[str] = None


@dataclass
class ExportManifest:
    """Ordered entries plus the live progress record of one export call."""
    entries: List[ExportEntry] = field(default_factory=list)
    progress: ExportProgress = field(default_factory=lambda: ExportProgress(0, 0, ""))


@dataclass
class ExportResult:
    archive_bytes: bytes
    filename: str
    entries: List[ExportEntry]
    failures: Dict[int, str]

    @property
    def image_count(self) -> int:
        return len(self.entries)

    @property
    def audio_count(self) -> int:
        return sum(1 for entry in self.entries if entry.audio_blob is not None)

    def summary(self) -> Dict[str, Any]:
        return {
            "items": len(self.entries),
            "images": self.image_count,
            "audio": self.audio_count,
            "failed": len(self.failures),
            "failures": {str(cid): reason for cid, reason in self.failures.items()},
        }


class CancellationToken:
    """
    Logical cancellation for one request.

    The owner hands out a token per request; `is_current` reports whether the
    request is still the latest one. Work checks the token after each
    suspension point and stops (raising ResolutionCancelled) once superseded.
    In-flight I/O is never force-aborted.
    """

    def __init__(self, request_id: int, is_current: Optional[Callable[[], bool]] = None):
        self.request_id = request_id
        self._is_current = is_current

    @property
    def cancelled(self) -> bool:
        return self._is_current is not None and not self._is_current()

    def check(self) -> None:
        if self.cancelled:
            raise ResolutionCancelled(self.request_id)

"""
Audio Pipeline Error Taxonomy

Every failure the resolution chain can produce is one of these types.

Propagation:
    - ProviderUnavailable / GenerationTimeout / CorruptAsset / GenerationFailed
      are absorbed by AudioResolver and logged; resolution falls through to
      the next source.
    - NoPlaybackCapability is the only error surfaced to the caller.
    - ResolutionCancelled marks a superseded request; callers discard it.
"""

from typing import Optional


class AudioPipelineError(Exception):
    """Base class for audio pipeline failures."""


class ProviderUnavailable(AudioPipelineError):
    """TTS provider unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class GenerationTimeout(ProviderUnavailable):
    """Polling exhausted its attempt budget while the job was still pending."""

    def __init__(self, job_id: str, attempts: int):
        super().__init__(f"Generation job {job_id} still pending after {attempts} polls")
        self.job_id = job_id
        self.attempts = attempts


class CorruptAsset(AudioPipelineError):
    """Downloaded or stored audio is below the minimum size threshold."""

    def __init__(self, size_bytes: int, min_bytes: int, source: str = ""):
        where = f" ({source})" if source else ""
        super().__init__(f"Audio payload too small{where}: {size_bytes} bytes < {min_bytes}")
        self.size_bytes = size_bytes
        self.min_bytes = min_bytes


class GenerationFailed(AudioPipelineError):
    """All submit-poll-download cycles were exhausted."""

    def __init__(self, text: str, attempts: int, cause: Optional[Exception] = None):
        super().__init__(f'Failed to generate audio for "{text}" after {attempts} attempts')
        self.text = text
        self.attempts = attempts
        self.cause = cause


class NoPlaybackCapability(AudioPipelineError):
    """No audio backend at all, not even local speech synthesis."""


class ResolutionCancelled(AudioPipelineError):
    """The request was superseded while it was being resolved."""

    def __init__(self, request_id: int):
        super().__init__(f"Request {request_id} superseded")
        self.request_id = request_id


class AssetPathError(ValueError):
    """Asset filename or path is malformed or escapes the storage root."""

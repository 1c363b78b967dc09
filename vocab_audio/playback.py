"""
Playback Controller

Single owner of the playback session: at most one non-stopped audio handle
exists at any time, and a later play() always supersedes an earlier one.

State machine:
    Idle -> Playing -> Idle        (end, error or stop_all)
    Playing -> Playing             (only via stop-then-start on a new play)

Cancellation is cooperative. Each play() takes a new request id from a
monotonically increasing counter; stop_all() advances the counter too. A
resolution that finishes for a superseded id is discarded, never started.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Optional

from .errors import NoPlaybackCapability, ResolutionCancelled
from .models import AudioRequest, AudioSource, CancellationToken, PlaybackSession, SynthesizedSpeech
from .resolver import AudioResolver
from .speech import AudioBackend, AudioHandle, PlaybackEnd

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"


class OutcomeStatus(str, Enum):
    PLAYING = "playing"
    SUPERSEDED = "superseded"
    FINISHED = "finished"
    STOPPED = "stopped"
    FAILED = "failed"
    SPEECH_FAILED = "speech_failed"


@dataclass
class PlaybackOutcome:
    request_id: int
    status: OutcomeStatus
    source: Optional[AudioSource] = None
    error: Optional[str] = None


_END_STATUS = {
    PlaybackEnd.FINISHED: OutcomeStatus.FINISHED,
    PlaybackEnd.STOPPED: OutcomeStatus.STOPPED,
    PlaybackEnd.FAILED: OutcomeStatus.FAILED,
    PlaybackEnd.SPEECH_FAILED: OutcomeStatus.SPEECH_FAILED,
}


class PlaybackController:
    """
    Plays resolved audio with last-request-wins ordering.

    Args:
        resolver: Audio resolver used for every play request
        backend: Audio output backend (only this controller touches it)
        on_end: Optional callback receiving the outcome when a stream ends
    """

    def __init__(
        self,
        resolver: AudioResolver,
        backend: AudioBackend,
        on_end: Optional[Callable[[PlaybackOutcome], None]] = None,
    ):
        self.resolver = resolver
        self.backend = backend
        self.on_end = on_end
        self.session = PlaybackSession()
        self._current_request = 0
        self._watcher: Optional[asyncio.Task] = None
        self.ended: Deque[PlaybackOutcome] = deque(maxlen=50)

    @property
    def state(self) -> PlaybackState:
        handle = self.session.active_handle
        if handle is None or handle.stopped:
            return PlaybackState.IDLE
        return PlaybackState.PLAYING

    @property
    def current_request(self) -> int:
        return self._current_request

    def _is_current(self, request_id: int) -> bool:
        return request_id == self._current_request

    async def stop_all(self):
        """
        Stop whatever is playing and invalidate any in-flight resolution.

        Idempotent: calling it while Idle is a no-op apart from advancing the
        request counter.
        """
        self._current_request += 1
        handle = self.session.active_handle
        self.session.active_handle = None
        if handle is not None and not handle.stopped:
            handle.stop()
            logger.debug(f" Stopped {type(handle.source).__name__} playback")

    async def play(self, request: AudioRequest) -> PlaybackOutcome:
        """
        Stop current audio, resolve `request`, start it if still current.

        Returns:
            PlaybackOutcome with status PLAYING, or SUPERSEDED if a newer
            request arrived while this one was resolving

        Raises:
            NoPlaybackCapability: No source could be played at all
        """
        await self.stop_all()
        request_id = self._current_request
        token = CancellationToken(request_id, lambda: self._is_current(request_id))

        try:
            source = await self.resolver.resolve(request, token)
        except ResolutionCancelled:
            logger.debug(f" Request {request_id} superseded during resolution")
            return PlaybackOutcome(request_id, OutcomeStatus.SUPERSEDED)

        if not self._is_current(request_id):
            logger.debug(f" Discarding stale result for request {request_id}")
            return PlaybackOutcome(request_id, OutcomeStatus.SUPERSEDED, source)

        handle = await self._start(source, request)

        if not self._is_current(request_id):
            handle.stop()
            return PlaybackOutcome(request_id, OutcomeStatus.SUPERSEDED, handle.source)

        self.session.active_handle = handle
        self._watcher = asyncio.ensure_future(self._watch(request_id, handle))
        logger.info(f" Playing {type(handle.source).__name__} for \"{request.text[:50]}\"")
        return PlaybackOutcome(request_id, OutcomeStatus.PLAYING, handle.source)

    async def _start(self, source: AudioSource, request: AudioRequest) -> AudioHandle:
        try:
            return await self.backend.start(source)
        except NoPlaybackCapability as e:
            if isinstance(source, SynthesizedSpeech) or not self.backend.can_speak():
                raise
            logger.warning(f" Cannot play {type(source).__name__} ({e}), using speech synthesis")
            return await self.backend.start(SynthesizedSpeech(request.text, request.language))

    async def _watch(self, request_id: int, handle: AudioHandle) -> PlaybackOutcome:
        end = await handle.wait()
        if self.session.active_handle is handle:
            self.session.active_handle = None
        outcome = PlaybackOutcome(request_id, _END_STATUS[end], handle.source)
        if end == PlaybackEnd.SPEECH_FAILED:
            logger.warning(f" Speech synthesis failed for request {request_id}")
        self.ended.append(outcome)
        if self.on_end is not None:
            self.on_end(outcome)
        return outcome

    async def wait_until_idle(self) -> Optional[PlaybackOutcome]:
        """Wait for the current stream to end; returns its outcome."""
        if self._watcher is None:
            return None
        return await self._watcher

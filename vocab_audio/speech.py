"""
Local Audio Output and Speech Synthesis

Backends the PlaybackController drives:
    - EspeakSpeechEngine: offline speech synthesis via espeak-ng
    - SubprocessAudioBackend: plays LocalFile / RemoteStream sources with
      ffplay and speaks SynthesizedSpeech sources through the speech engine

Binaries are discovered with shutil.which; a missing speech engine means
no playback capability for the speech fallback.
"""

import asyncio
import logging
import shutil
from enum import Enum
from typing import List, Optional, Protocol

from .asset_store import LocalAssetStore
from .config import AudioConfig
from .errors import NoPlaybackCapability
from .models import AudioSource, LocalFile, RemoteStream, SynthesizedSpeech

logger = logging.getLogger(__name__)

# espeak-ng default speaking rate in words per minute
ESPEAK_BASE_WPM = 175


class PlaybackEnd(str, Enum):
    FINISHED = "finished"
    STOPPED = "stopped"
    FAILED = "failed"
    SPEECH_FAILED = "speech_failed"


class AudioHandle(Protocol):
    source: AudioSource

    @property
    def stopped(self) -> bool:
        ...

    def stop(self) -> None:
        """Stop output. Must be idempotent."""
        ...

    async def wait(self) -> PlaybackEnd:
        ...


class AudioBackend(Protocol):
    def can_speak(self) -> bool:
        ...

    async def start(self, source: AudioSource) -> AudioHandle:
        ...


class SpeechEngine(Protocol):
    def is_available(self) -> bool:
        ...

    def command(self, text: str, language: str) -> List[str]:
        ...


class EspeakSpeechEngine:
    """espeak-ng command builder (rate scaled by `speech_rate`)."""

    def __init__(self, rate: float = 0.9, binary: Optional[str] = None):
        self.rate = rate
        self.binary = binary or shutil.which("espeak-ng")
        if not self.binary:
            logger.warning(" espeak-ng not found - local speech synthesis disabled")

    def is_available(self) -> bool:
        return bool(self.binary)

    def command(self, text: str, language: str) -> List[str]:
        if not self.binary:
            raise NoPlaybackCapability("Speech synthesis not supported (espeak-ng missing)")
        voice = language.split("-")[0].lower() or "en"
        wpm = int(ESPEAK_BASE_WPM * self.rate)
        return [self.binary, "-v", voice, "-s", str(wpm), text]


class ProcessHandle:
    """AudioHandle backed by one child process."""

    def __init__(self, proc: asyncio.subprocess.Process, source: AudioSource):
        self.proc = proc
        self.source = source
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self.proc.returncode is None:
            try:
                self.proc.terminate()
            except ProcessLookupError:
                pass

    async def wait(self) -> PlaybackEnd:
        returncode = await self.proc.wait()
        if self._stopped:
            return PlaybackEnd.STOPPED
        if returncode == 0:
            return PlaybackEnd.FINISHED
        if isinstance(self.source, SynthesizedSpeech):
            logger.warning(f"Speech synthesis error (exit {returncode})")
            return PlaybackEnd.SPEECH_FAILED
        logger.warning(f"Audio player exited with code {returncode}")
        return PlaybackEnd.FAILED


class SubprocessAudioBackend:
    """
    Plays audio sources through local binaries.

    LocalFile paths are resolved through the asset store; RemoteStream URLs
    that are relative (proxy endpoints) are joined onto `base_url`.
    """

    def __init__(
        self,
        config: AudioConfig,
        store: LocalAssetStore,
        speech: Optional[SpeechEngine] = None,
        base_url: str = "",
        player: Optional[str] = None,
    ):
        self.config = config
        self.store = store
        self.speech = speech or EspeakSpeechEngine(rate=config.speech_rate)
        self.base_url = base_url.rstrip("/") or f"http://127.0.0.1:{config.service_port}"
        self.player = player or shutil.which("ffplay")
        if not self.player:
            logger.warning(" ffplay not found - file and stream playback disabled")

    def can_speak(self) -> bool:
        return self.speech.is_available()

    def _player_command(self, target: str) -> List[str]:
        if not self.player:
            raise NoPlaybackCapability("No audio player available (ffplay missing)")
        return [self.player, "-nodisp", "-autoexit", "-loglevel", "quiet", target]

    def _command_for(self, source: AudioSource) -> List[str]:
        if isinstance(source, LocalFile):
            return self._player_command(str(self.store.base_dir / source.path))
        if isinstance(source, RemoteStream):
            url = source.url if "://" in source.url else f"{self.base_url}{source.url}"
            return self._player_command(url)
        if isinstance(source, SynthesizedSpeech):
            return self.speech.command(source.text, source.language)
        raise TypeError(f"Unknown audio source: {source!r}")

    async def start(self, source: AudioSource) -> ProcessHandle:
        cmd = self._command_for(source)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise NoPlaybackCapability(f"Failed to start {cmd[0]}: {e}") from e
        logger.debug(f" Started {cmd[0]} for {type(source).__name__}")
        return ProcessHandle(proc, source)

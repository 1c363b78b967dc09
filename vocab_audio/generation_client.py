"""
Generation Job Client

Drives a job-based TTS provider through bounded submit → poll → download
cycles.

Retry policy:
    - submit: one call per cycle; ProviderUnavailable ends the cycle
    - poll: fixed interval, at most `poll_max_attempts` calls per cycle;
      transient poll failures use up the same budget; a job still pending
      when the budget runs out is marked Error (GenerationTimeout)
    - download: payloads at or below `min_audio_bytes` are CorruptAsset
    - at most `generation_retries` cycles with a fixed `retry_backoff`
      between them, then GenerationFailed

Only typed AudioPipelineError subclasses leave this module.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import AudioConfig
from .errors import CorruptAsset, GenerationFailed, GenerationTimeout, ProviderUnavailable
from .models import CancellationToken, GeneratedAudio, GenerationJob, JobStatus
from .providers.base import GenerationProvider

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class GenerationJobClient:
    """
    Bounded retry/poll loop around a GenerationProvider.

    Args:
        provider: Job-based TTS provider
        config: Retry, poll and size budgets
        sleep: Awaitable sleep used between polls and cycles (tests pass a fake)
    """

    def __init__(self, provider: GenerationProvider, config: AudioConfig, sleep: Optional[SleepFunc] = None):
        self.provider = provider
        self.config = config
        self._sleep = sleep or asyncio.sleep
        self.stats = {
            "submitted": 0,
            "completed": 0,
            "failed_cycles": 0,
            "exhausted": 0,
            "corrupt_downloads": 0,
            "poll_failures": 0,
        }

    async def submit(self, text: str, language: str) -> str:
        """
        Submit a generation request.

        Raises:
            ProviderUnavailable: Provider unreachable or non-2xx
        """
        job_id = await self.provider.submit(text, language)
        self.stats["submitted"] += 1
        return job_id

    async def poll(self, job_id: str) -> GenerationJob:
        """Single status call; see wait_for_job for the bounded loop."""
        return await self.provider.status(job_id)

    async def download(self, location: str) -> bytes:
        """
        Download finished audio and re-validate its size.

        Raises:
            ProviderUnavailable: Download failed
            CorruptAsset: Payload at or below the minimum size
        """
        payload = await self.provider.download(location)
        if len(payload) <= self.config.min_audio_bytes:
            self.stats["corrupt_downloads"] += 1
            raise CorruptAsset(len(payload), self.config.min_audio_bytes, source="download")
        return payload

    async def wait_for_job(self, job_id: str, token: Optional[CancellationToken] = None) -> GenerationJob:
        """
        Poll until the job is terminal or the poll budget is spent.

        Returns:
            The job in Done state with its result location

        Raises:
            GenerationTimeout: Still pending after `poll_max_attempts` polls
            ProviderUnavailable: Provider reported Error, or Done without a location
            ResolutionCancelled: Token superseded between polls
        """
        job = GenerationJob(id=job_id)
        max_attempts = self.config.poll_max_attempts

        while job.attempts < max_attempts:
            job.attempts += 1
            try:
                status = await self.poll(job_id)
            except ProviderUnavailable as e:
                self.stats["poll_failures"] += 1
                logger.warning(f"Audio polling attempt {job.attempts} failed: {e}")
                status = None

            if token is not None:
                token.check()

            if status is not None:
                if status.status == JobStatus.DONE:
                    if not status.result_location:
                        job.mark_error("Done without location")
                        raise ProviderUnavailable(f"Job {job_id} finished without a location")
                    job.status = JobStatus.DONE
                    job.result_location = status.result_location
                    return job
                if status.status == JobStatus.ERROR:
                    job.mark_error("Provider reported Error")
                    raise ProviderUnavailable(f"Generation job {job_id} failed at provider")

            if job.attempts < max_attempts:
                await self._sleep(self.config.poll_interval)
                if token is not None:
                    token.check()

        job.mark_error("Poll budget exhausted")
        raise GenerationTimeout(job_id, job.attempts)

    async def generate(
        self,
        text: str,
        language: str,
        token: Optional[CancellationToken] = None,
    ) -> GeneratedAudio:
        """
        Run full submit-poll-download cycles until one succeeds.

        Args:
            text: Text to synthesize
            language: Language tag (e.g. "th-TH")
            token: Optional cancellation token checked at each suspension point

        Returns:
            GeneratedAudio with the Done job and validated payload

        Raises:
            GenerationFailed: Every cycle failed (cause attached)
            ResolutionCancelled: Token superseded
        """
        retries = self.config.generation_retries
        last_error: Optional[Exception] = None
        start_time = time.time()

        logger.info(f" Generating audio for: \"{text[:50]}\" ({language})")

        for cycle in range(1, retries + 1):
            if token is not None:
                token.check()
            try:
                logger.debug(f" Attempt {cycle}/{retries} for {self.provider.name}")
                job_id = await self.submit(text, language)
                job = await self.wait_for_job(job_id, token)
                payload = await self.download(job.result_location)
                if token is not None:
                    token.check()

                self.stats["completed"] += 1
                logger.info(
                    f" Generated audio: job={job.id} ({len(payload)} bytes) "
                    f"in {time.time() - start_time:.2f}s, cycle {cycle}/{retries}"
                )
                return GeneratedAudio(job=job, payload=payload)

            except (ProviderUnavailable, CorruptAsset) as e:
                last_error = e
                self.stats["failed_cycles"] += 1
                logger.warning(f" Generation attempt {cycle}/{retries} failed: {e}")
                if cycle < retries:
                    await self._sleep(self.config.retry_backoff)

        self.stats["exhausted"] += 1
        raise GenerationFailed(text, retries, last_error)

    async def fetch_finished(self, job_id: str) -> bytes:
        """
        Download the audio of an already finished job (proxy download path).

        Raises:
            GenerationTimeout: Job is not Done yet
            ProviderUnavailable: Job errored, or provider unreachable
            CorruptAsset: Payload at or below the minimum size
        """
        job = await self.poll(job_id)
        if job.status == JobStatus.ERROR:
            raise ProviderUnavailable(f"Generation job {job_id} failed at provider")
        if job.status != JobStatus.DONE or not job.result_location:
            raise GenerationTimeout(job_id, 1)
        return await self.download(job.result_location)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        stats["provider"] = self.provider.name
        return stats

    async def close(self):
        await self.provider.close()

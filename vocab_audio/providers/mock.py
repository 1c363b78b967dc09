"""
Mock Generation Provider

In-process job-based provider for tests and offline development:
    - Jobs become Done after a configurable number of status polls
    - Payload is a run of silent MPEG-1 Layer III frames
    - Failures can be scripted (submit failures, error jobs, tiny payloads)
    - No network access, no API keys
"""

import logging
import struct
import uuid
from typing import Dict, Optional, Tuple

from ..errors import ProviderUnavailable
from ..models import GenerationJob, JobStatus

logger = logging.getLogger(__name__)

# MPEG-1 Layer III, 128 kbps, 44.1 kHz, no padding: 417-byte frames
MP3_FRAME_HEADER = struct.pack(">I", 0xFFFB9064)
MP3_FRAME_SIZE = 417


def silent_mp3(num_bytes: int) -> bytes:
    """Silent MP3 payload of roughly `num_bytes` bytes (at least one frame)."""
    frame = MP3_FRAME_HEADER + b"\x00" * (MP3_FRAME_SIZE - len(MP3_FRAME_HEADER))
    frames = max(1, num_bytes // MP3_FRAME_SIZE)
    payload = frame * frames
    if len(payload) < num_bytes:
        payload += b"\x00" * (num_bytes - len(payload))
    return payload


class MockGenerationProvider:
    """
    Mock provider with scriptable behaviour.

    Args:
        polls_until_done: Status polls answered Pending before Done
        payload_size: Size of the downloaded audio in bytes
        fail_submits: Number of initial submit calls that fail
        error_jobs: If True every job ends in Error
    """

    name = "mock"

    def __init__(
        self,
        polls_until_done: int = 1,
        payload_size: int = 5 * 1024,
        fail_submits: int = 0,
        error_jobs: bool = False,
    ):
        self.polls_until_done = polls_until_done
        self.payload_size = payload_size
        self.fail_submits = fail_submits
        self.error_jobs = error_jobs
        self.jobs: Dict[str, Dict[str, object]] = {}
        self.submit_calls = 0
        self.status_calls = 0
        self.download_calls = 0

        logger.info(" Mock generation provider initialized")

    async def submit(self, text: str, language: str) -> str:
        self.submit_calls += 1
        if self.submit_calls <= self.fail_submits:
            raise ProviderUnavailable("Mock provider unavailable", status=503)
        job_id = uuid.uuid4().hex[:12]
        self.jobs[job_id] = {"text": text, "language": language, "polls": 0}
        return job_id

    async def status(self, job_id: str) -> GenerationJob:
        self.status_calls += 1
        job = self.jobs.get(job_id)
        if job is None:
            raise ProviderUnavailable(f"Unknown job {job_id}", status=404)
        job["polls"] = int(job["polls"]) + 1
        if self.error_jobs:
            return GenerationJob(id=job_id, status=JobStatus.ERROR)
        if int(job["polls"]) < self.polls_until_done:
            return GenerationJob(id=job_id, status=JobStatus.PENDING)
        return GenerationJob(id=job_id, status=JobStatus.DONE, result_location=f"mock://{job_id}.mp3")

    async def download(self, location: str) -> bytes:
        self.download_calls += 1
        if not location.startswith("mock://"):
            raise ProviderUnavailable(f"Unknown location {location}", status=404)
        return silent_mp3(self.payload_size)

    def validate_config(self) -> Tuple[bool, Optional[str]]:
        """Mock provider has no requirements, always valid."""
        return True, None

    async def close(self):
        pass

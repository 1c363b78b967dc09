"""
Generation Provider Base Protocol

Defines the interface every asynchronous TTS provider implements: a job is
submitted, its status is polled until terminal, and the finished audio is
downloaded from the location the provider reports.
"""

from typing import Protocol, Tuple, Optional

from ..models import GenerationJob


class GenerationProvider(Protocol):
    """
    Unified interface for job-based TTS providers.

    Methods:
        submit: Start a generation job, returning its id
        status: Fetch the current job state
        download: Fetch the finished audio bytes
        validate_config: Check if provider is properly configured
    """

    name: str

    async def submit(self, text: str, language: str) -> str:
        """
        Submit text for generation.

        Returns:
            Provider job id

        Raises:
            ProviderUnavailable: Unreachable endpoint, non-2xx status or
                a response without a job id
        """
        ...

    async def status(self, job_id: str) -> GenerationJob:
        """
        Fetch job status.

        Raises:
            ProviderUnavailable: On network failure or non-2xx status
        """
        ...

    async def download(self, location: str) -> bytes:
        """
        Download finished audio from `location`.

        Raises:
            ProviderUnavailable: On network failure or non-2xx status
        """
        ...

    def validate_config(self) -> Tuple[bool, Optional[str]]:
        ...

    async def close(self):
        ...

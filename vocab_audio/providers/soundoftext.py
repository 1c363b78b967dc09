"""
SoundOfText Generation Provider

Job-based TTS over the SoundOfText HTTP API via aiohttp.

API:
    POST {base}/sounds        {"engine": "Google", "data": {"text", "voice"}}
                              -> {"success": true, "id": "<job id>"}
    GET  {base}/sounds/<id>   -> {"status": "Pending|Done|Error", "location": "<mp3 url>"}

The provider's `location` URL is only ever fetched server-side; clients get
the proxy endpoint instead.
"""

import asyncio
import logging
from typing import Optional, Tuple

import aiohttp

from ..config import AudioConfig
from ..errors import ProviderUnavailable
from ..models import GenerationJob, JobStatus

logger = logging.getLogger(__name__)


def normalize_voice(language: str) -> str:
    """Map short language tags to provider voice codes ("th" -> "th-TH")."""
    if language == "th":
        return "th-TH"
    return language


class SoundOfTextProvider:
    """
    SoundOfText provider.

    Every failure (connection error, timeout, non-2xx, malformed body) is
    raised as ProviderUnavailable; retry policy lives in GenerationJobClient.
    """

    name = "soundoftext"

    def __init__(self, config: AudioConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.base_url = config.provider_base_url
        self.session = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(total=config.request_timeout)

        logger.info(f" SoundOfText provider initialized ({self.base_url}, engine={config.provider_engine})")

    async def _ensure_session(self):
        """Create aiohttp session if not exists."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True

    async def submit(self, text: str, language: str) -> str:
        await self._ensure_session()
        payload = {
            "engine": self.config.provider_engine,
            "data": {"text": text, "voice": normalize_voice(language)},
        }
        try:
            async with self.session.post(f"{self.base_url}/sounds", json=payload) as response:
                if response.status < 200 or response.status >= 300:
                    error_text = await response.text()
                    raise ProviderUnavailable(
                        f"SoundOfText API returned {response.status}: {error_text[:200]}",
                        status=response.status,
                    )
                result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ProviderUnavailable(f"SoundOfText submit failed: {e}") from e

        if not isinstance(result, dict) or not result.get("success") or not result.get("id"):
            raise ProviderUnavailable(f"SoundOfText rejected request: {result}")

        logger.debug(f" SoundOfText job submitted: {result['id']} ({len(text)} chars)")
        return str(result["id"])

    async def status(self, job_id: str) -> GenerationJob:
        await self._ensure_session()
        try:
            async with self.session.get(f"{self.base_url}/sounds/{job_id}") as response:
                if response.status < 200 or response.status >= 300:
                    raise ProviderUnavailable(
                        f"Failed to get audio status ({response.status})", status=response.status
                    )
                result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ProviderUnavailable(f"SoundOfText status failed: {e}") from e

        if not isinstance(result, dict):
            result = {}
        raw_status = str(result.get("status", "Pending"))
        try:
            status = JobStatus(raw_status)
        except ValueError:
            status = JobStatus.PENDING
        return GenerationJob(id=job_id, status=status, result_location=result.get("location"))

    async def download(self, location: str) -> bytes:
        await self._ensure_session()
        try:
            async with self.session.get(location) as response:
                if response.status < 200 or response.status >= 300:
                    raise ProviderUnavailable(
                        f"Failed to download audio file ({response.status})", status=response.status
                    )
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderUnavailable(f"SoundOfText download failed: {e}") from e

    def validate_config(self) -> Tuple[bool, Optional[str]]:
        if not self.base_url.startswith(("http://", "https://")):
            return False, f"Invalid provider URL: {self.base_url}"
        return True, None

    async def close(self):
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()

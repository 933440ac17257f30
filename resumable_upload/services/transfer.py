"""
Transfer clients that move one chunk's bytes to the remote side.

Each client owns its speed tier, so two sessions driven by different clients
never affect each other's latency policy. A tier change applies to the next
transfer; transfers already sleeping keep the delay they sampled.
"""
import asyncio
import hashlib
import logging
import random
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from resumable_upload.core.config import settings
from resumable_upload.core.exceptions import ChunkTransferError
from resumable_upload.schemas.upload import SpeedTier

logger = logging.getLogger(__name__)


class TransferClient(ABC):
    """
    Performs the transfer of one chunk and reports the outcome.

    transfer() returns on success and raises ChunkTransferError on failure.
    It must be safe to call concurrently for distinct chunks of a session.
    """

    def __init__(self, speed_tier: Optional[SpeedTier] = None, rng: Optional[random.Random] = None):
        self.speed_tier = speed_tier
        self._rng = rng or random.Random()

    def sample_delay(self) -> float:
        """Artificial latency in seconds for the current tier (0 when no tier is set)."""
        if self.speed_tier is None:
            return 0.0
        low, high = self.speed_tier.delay_range_ms
        return self._rng.uniform(low, high) / 1000

    @abstractmethod
    async def transfer(self, session_id: str, chunk_index: int, total_chunks: int, data: bytes) -> None:
        ...

    async def list_remote_chunks(self, session_id: str) -> List[int]:
        """Chunk indices the remote side already holds. Local state is authoritative when empty."""
        return []

    async def aclose(self) -> None:
        pass


class SimulatedTransferClient(TransferClient):
    """Stand-in for a real backend: sleeps for a sampled latency, then fails at random."""

    def __init__(
        self,
        speed_tier: SpeedTier = SpeedTier(settings.DEFAULT_SPEED_TIER),
        failure_rate: float = settings.FAILURE_RATE,
        rng: Optional[random.Random] = None
    ):
        super().__init__(speed_tier=speed_tier, rng=rng)
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.failure_rate = failure_rate

    async def transfer(self, session_id: str, chunk_index: int, total_chunks: int, data: bytes) -> None:
        await asyncio.sleep(self.sample_delay())

        if self._rng.random() < self.failure_rate:
            raise ChunkTransferError(chunk_index, "simulated network failure", session_id=session_id)

        logger.debug(f"Chunk {chunk_index}/{total_chunks} of {session_id} uploaded ({len(data)} bytes)")


class HttpTransferClient(TransferClient):
    """
    Uploads chunks to an HTTP backend.

    Endpoints:
        PUT {base_url}/upload/{session_id}/chunk/{index}   multipart "file" + X-Part-Hash (MD5)
        GET {base_url}/upload/{session_id}/status          {"completed_chunks": [...]}
    """

    def __init__(
        self,
        base_url: str = settings.API_BASE_URL,
        speed_tier: Optional[SpeedTier] = None,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None
    ):
        super().__init__(speed_tier=speed_tier, rng=rng)
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def transfer(self, session_id: str, chunk_index: int, total_chunks: int, data: bytes) -> None:
        delay = self.sample_delay()
        if delay:
            await asyncio.sleep(delay)

        part_hash = hashlib.md5(data).hexdigest()
        try:
            response = await self._client.put(
                f"{self.base_url}/upload/{session_id}/chunk/{chunk_index}",
                files={"file": (f"chunk_{chunk_index:04d}", data, "application/octet-stream")},
                headers={
                    "X-Part-Hash": part_hash,
                    "X-Total-Chunks": str(total_chunks)
                }
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ChunkTransferError(
                chunk_index,
                f"HTTP {e.response.status_code}",
                session_id=session_id
            ) from e
        except httpx.HTTPError as e:
            raise ChunkTransferError(chunk_index, str(e) or type(e).__name__, session_id=session_id) from e

        logger.debug(f"📤 Chunk {chunk_index}/{total_chunks} of {session_id} sent (md5 {part_hash[:8]})")

    async def list_remote_chunks(self, session_id: str) -> List[int]:
        try:
            response = await self._client.get(f"{self.base_url}/upload/{session_id}/status")
            if response.status_code == 404:
                return []
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"⚠️ Could not fetch remote chunks for {session_id}: {e}")
            return []

        completed = body.get("completed_chunks", []) if isinstance(body, dict) else None
        if not isinstance(completed, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in completed
        ):
            logger.warning(f"⚠️ Ignoring malformed status response for {session_id}: {body!r:.200}")
            return []
        return sorted(completed)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

"""Tests for transfer clients."""
import hashlib
import random

import httpx
import pytest

from resumable_upload.core.exceptions import ChunkTransferError
from resumable_upload.schemas.upload import SpeedTier
from resumable_upload.services.transfer import HttpTransferClient, SimulatedTransferClient


class TestSimulatedTransferClient:
    """Test the simulated backend."""

    @pytest.mark.asyncio
    async def test_always_fails(self):
        client = SimulatedTransferClient(speed_tier=SpeedTier.FAST, failure_rate=1.0)
        client.sample_delay = lambda: 0

        with pytest.raises(ChunkTransferError) as exc_info:
            await client.transfer("sid", 3, 10, b"data")

        assert exc_info.value.chunk_index == 3
        assert exc_info.value.session_id == "sid"

    @pytest.mark.asyncio
    async def test_never_fails(self):
        client = SimulatedTransferClient(speed_tier=SpeedTier.FAST, failure_rate=0.0)
        client.sample_delay = lambda: 0

        for index in range(20):
            await client.transfer("sid", index, 20, b"data")

    def test_invalid_failure_rate(self):
        with pytest.raises(ValueError):
            SimulatedTransferClient(failure_rate=1.5)
        with pytest.raises(ValueError):
            SimulatedTransferClient(failure_rate=-0.1)

    @pytest.mark.parametrize("tier,low,high", [
        (SpeedTier.FAST, 0.05, 0.15),
        (SpeedTier.NORMAL, 0.15, 0.3),
        (SpeedTier.SLOW, 0.5, 1.0),
        (SpeedTier.VERY_SLOW, 1.0, 2.0),
    ])
    def test_delay_within_tier(self, tier, low, high):
        """Should sample latency inside the tier's window."""
        client = SimulatedTransferClient(speed_tier=tier, rng=random.Random(42))
        for _ in range(50):
            assert low <= client.sample_delay() <= high

    def test_tier_change_applies_to_next_sample(self):
        client = SimulatedTransferClient(speed_tier=SpeedTier.VERY_SLOW, rng=random.Random(1))
        assert client.sample_delay() >= 1.0

        client.speed_tier = SpeedTier.FAST
        assert client.sample_delay() <= 0.15

    def test_clients_keep_independent_tiers(self):
        fast = SimulatedTransferClient(speed_tier=SpeedTier.FAST)
        slow = SimulatedTransferClient(speed_tier=SpeedTier.SLOW)

        fast.speed_tier = SpeedTier.NORMAL

        assert slow.speed_tier == SpeedTier.SLOW

    @pytest.mark.asyncio
    async def test_no_remote_chunks(self):
        client = SimulatedTransferClient()
        assert await client.list_remote_chunks("sid") == []


class TestHttpTransferClient:
    """Test the HTTP client against a mock transport."""

    @staticmethod
    def make_client(handler):
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpTransferClient(base_url="http://uploads.test/", client=http), http

    @pytest.mark.asyncio
    async def test_put_chunk(self):
        """Should PUT the chunk with its MD5 and the total chunk count."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "ok"})

        client, http = self.make_client(handler)
        await client.transfer("sid", 4, 9, b"chunk-bytes")
        await http.aclose()

        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == "/upload/sid/chunk/4"
        assert request.headers["X-Part-Hash"] == hashlib.md5(b"chunk-bytes").hexdigest()
        assert request.headers["X-Total-Chunks"] == "9"
        assert b"chunk-bytes" in request.content

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Should turn an error status into ChunkTransferError."""
        client, http = self.make_client(lambda request: httpx.Response(500))

        with pytest.raises(ChunkTransferError) as exc_info:
            await client.transfer("sid", 0, 1, b"x")
        await http.aclose()

        assert exc_info.value.reason == "HTTP 500"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Should turn transport errors into ChunkTransferError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, http = self.make_client(handler)

        with pytest.raises(ChunkTransferError):
            await client.transfer("sid", 0, 1, b"x")
        await http.aclose()

    @pytest.mark.asyncio
    async def test_list_remote_chunks(self):
        def handler(request):
            assert request.url.path == "/upload/sid/status"
            return httpx.Response(200, json={"completed_chunks": [3, 0, 1]})

        client, http = self.make_client(handler)
        assert await client.list_remote_chunks("sid") == [0, 1, 3]
        await http.aclose()

    @pytest.mark.asyncio
    async def test_list_remote_chunks_unknown_session(self):
        client, http = self.make_client(lambda request: httpx.Response(404))
        assert await client.list_remote_chunks("sid") == []
        await http.aclose()

    @pytest.mark.asyncio
    async def test_list_remote_chunks_server_down(self):
        """Should fall back to local state when the status call fails."""
        client, http = self.make_client(lambda request: httpx.Response(503))
        assert await client.list_remote_chunks("sid") == []
        await http.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        [0, 1],
        {"completed_chunks": None},
        {"completed_chunks": "0,1"},
        {"completed_chunks": [0, "1"]},
        {"completed_chunks": [True]},
    ])
    async def test_list_remote_chunks_malformed_body(self, body):
        """Should treat a status body of the wrong shape as no remote chunks."""
        client, http = self.make_client(lambda request: httpx.Response(200, json=body))
        assert await client.list_remote_chunks("sid") == []
        await http.aclose()

    @pytest.mark.asyncio
    async def test_list_remote_chunks_missing_key(self):
        client, http = self.make_client(lambda request: httpx.Response(200, json={"status": "active"}))
        assert await client.list_remote_chunks("sid") == []
        await http.aclose()

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self):
        client, http = self.make_client(lambda request: httpx.Response(200))

        await client.aclose()

        assert http.is_closed is False
        await http.aclose()

"""
Pytest configuration and fixtures for upload engine tests.
"""
import asyncio
import math

import pytest

from resumable_upload.core.database import build_engine
from resumable_upload.core.exceptions import ChunkTransferError
from resumable_upload.services.chunker import calculate_total_chunks, generate_session_id
from resumable_upload.services.session_store import SessionStore
from resumable_upload.services.source import BytesSource
from resumable_upload.services.transfer import TransferClient

ALWAYS = math.inf


class RecordingTransferClient(TransferClient):
    """
    Transfer client double.

    Records every dispatched chunk, tracks peak concurrency, and fails chunks
    according to fail_plan ({chunk_index: number_of_failures}, ALWAYS for
    permanent failure).
    """

    def __init__(self, fail_plan=None, delay: float = 0.0, remote_chunks=None):
        super().__init__(speed_tier=None)
        self.fail_plan = dict(fail_plan or {})
        self.delay = delay
        self.remote_chunks = list(remote_chunks or [])
        self.calls = []
        self.payloads = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.on_transfer = None
        self.closed = False

    async def transfer(self, session_id, chunk_index, total_chunks, data):
        self.calls.append(chunk_index)
        self.payloads[chunk_index] = data
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_transfer is not None:
                self.on_transfer(chunk_index)
            await asyncio.sleep(self.delay)
            if self.fail_plan.get(chunk_index, 0) > 0:
                self.fail_plan[chunk_index] -= 1
                raise ChunkTransferError(chunk_index, "planned failure", session_id=session_id)
        finally:
            self.in_flight -= 1

    async def list_remote_chunks(self, session_id):
        return list(self.remote_chunks)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def engine(tmp_path):
    """SQLite engine backed by a file in the test's temp directory."""
    engine = build_engine(f"sqlite:///{tmp_path / 'sessions.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SessionStore(engine)


@pytest.fixture
def make_session(store):
    """Factory creating a persisted session for a file of the given size."""
    def _make(file_size: int = 1024, chunk_size: int = 256, file_name: str = "test.bin"):
        total_chunks = calculate_total_chunks(file_size, chunk_size)
        return store.create(generate_session_id(), file_name, file_size, total_chunks, chunk_size)
    return _make


@pytest.fixture
def make_source():
    """Factory creating an in-memory source matching a session."""
    def _make(session):
        data = bytes(i % 251 for i in range(session.file_size))
        return BytesSource(session.file_name, data)
    return _make


@pytest.fixture
def client():
    return RecordingTransferClient()


@pytest.fixture
def make_client():
    """Factory for RecordingTransferClient with custom failure plans."""
    return RecordingTransferClient

"""
Upload scheduler - drives bounded-parallelism transfer of a session's chunks.

Dispatch loop (one per session at a time):
    1. pending = chunks not uploaded, ascending; empty -> done
    2. stop if a pause was requested
    3. batch = first MAX_PARALLEL pending indices
    4. transfer the batch concurrently and wait for every chunk to settle
    5. stop if a pause was requested
    6. done if every chunk is uploaded
    7. pacing delay, repeat

A chunk that fails MAX_RETRIES times within one run is left out of the rest
of that run; if any remain when the loop runs out of work the session is
stalled until the next explicit start. Pause and cancel are sampled between
batches only; an in-flight transfer always settles.

All chunk-table changes go through the non-destructive outcome function and
are followed by a save. Outcomes are applied on the event loop thread, which
serializes them without a lock. The save is a synchronous commit, so the
loop blocks for its duration.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from resumable_upload.core.config import settings
from resumable_upload.core.exceptions import MissingDataSourceError
from resumable_upload.schemas.upload import (
    ByteRange,
    ChunkRecord,
    SpeedTier,
    UploadProgress,
    UploadSessionState,
    UploadStatus,
)
from resumable_upload.services.chunker import partition
from resumable_upload.services.session_store import SessionStore
from resumable_upload.services.source import DataSource, validate_source
from resumable_upload.services.transfer import TransferClient

logger = logging.getLogger(__name__)

SessionCallback = Callable[[UploadSessionState], None]


class UploadScheduler:
    """
    Orchestrates one session's upload against one bound data source.

    Control surface: start / resume / pause / cancel / retry_failed_chunks,
    plus read-only progress values derived from the chunk table.
    """

    def __init__(
        self,
        session: UploadSessionState,
        store: SessionStore,
        transfer_client: TransferClient,
        source: Optional[DataSource] = None,
        on_complete: Optional[SessionCallback] = None,
        on_progress: Optional[SessionCallback] = None,
        max_parallel: int = settings.MAX_PARALLEL,
        max_retries: int = settings.MAX_RETRIES,
        batch_delay: float = settings.BATCH_DELAY_SECONDS
    ):
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be at least 1, got {max_parallel}")

        self._session = session
        self._store = store
        self._client = transfer_client
        self._on_complete = on_complete
        self._on_progress = on_progress
        self.max_parallel = max_parallel
        self.max_retries = max_retries
        self.batch_delay = batch_delay

        self._source: Optional[DataSource] = None
        self._ranges: List[ByteRange] = []
        self._semaphore = asyncio.Semaphore(max_parallel)
        self._running = False
        self._paused = False
        self._loop_active = False
        self._completion_notified = False
        self._run_failures: Dict[int, int] = {}
        self._in_flight = 0

        if source is not None:
            self.bind_source(source)

    # ==================== Data source ====================

    def bind_source(self, source: DataSource) -> None:
        """
        Attach the byte source for this session.

        Raises SourceMismatchError (leaving the chunk table untouched) if the
        source's name or size differ from the session's recorded file.
        """
        validate_source(source, self._session)
        self._source = source
        self._ranges = partition(self._session.file_size, self._session.chunk_size)
        logger.info(f"🔗 Bound {source.name} to session {self._session.session_id}")

    @property
    def needs_source(self) -> bool:
        return self._source is None and bool(self._session.pending_indices)

    # ==================== State queries ====================

    @property
    def state(self) -> UploadSessionState:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def status(self) -> UploadStatus:
        if self._session.is_complete:
            return UploadStatus.COMPLETED
        if self._paused:
            return UploadStatus.PAUSED
        if self._running:
            return UploadStatus.RUNNING
        if self.needs_source:
            return UploadStatus.NEEDS_SOURCE
        if self._session.failed_chunks:
            return UploadStatus.STALLED
        return UploadStatus.IDLE

    @property
    def progress_percent(self) -> float:
        return self._session.progress_percent

    @property
    def uploaded_bytes(self) -> int:
        return self._session.uploaded_bytes

    @property
    def failed_chunks(self) -> List[ChunkRecord]:
        return self._session.failed_chunks

    @property
    def speed_tier(self) -> Optional[SpeedTier]:
        return self._client.speed_tier

    def set_speed_tier(self, tier) -> None:
        """Takes effect on the next dispatched chunk."""
        self._client.speed_tier = SpeedTier(tier)
        logger.info(f"⚙️  Speed for {self._session.session_id} set to {self._client.speed_tier.label}")

    def progress(self) -> UploadProgress:
        session = self._session
        return UploadProgress(
            session_id=session.session_id,
            file_name=session.file_name,
            status=self.status,
            progress_percent=session.progress_percent,
            uploaded_chunks=session.uploaded_count,
            total_chunks=session.total_chunks,
            uploaded_bytes=session.uploaded_bytes,
            file_size=session.file_size,
            failed_chunks=session.failed_indices,
            speed_tier=self.speed_tier
        )

    # ==================== Control ====================

    async def start(self) -> None:
        """
        Run the dispatch loop until the session completes, stalls, or is paused.

        A no-op while already running. Called while paused it resumes; the
        pending set is always recomputed from the chunk table, so a session
        reloaded after a restart resumes the same way.
        """
        if self._loop_active:
            if self._paused:
                logger.info(f"▶️  Resuming {self._session.session_id}")
                self._paused = False
                self._running = True
            return

        if self._session.is_complete:
            self._complete()
            return

        if self._source is None:
            logger.warning(
                f"⚠️ Session {self._session.session_id} needs its data source "
                f"({self._session.file_name}) before upload can continue"
            )
            return

        self._paused = False
        self._running = True
        self._loop_active = True
        self._run_failures = {}
        try:
            await self._reconcile_remote_chunks()
            # Every chunk still pending once the loop is exhausted has failed
            # max_retries times in this run, so it is also past the
            # retry_failed_chunks ceiling; no extra retry pass is needed here.
            await self._dispatch_loop()

            if self._session.is_complete:
                self._complete()
            elif not self._paused:
                logger.warning(
                    f"⚠️ Upload {self._session.session_id} stalled: "
                    f"{len(self._session.failed_chunks)} chunk(s) failed"
                )
        finally:
            self._loop_active = False
            if not self._paused:
                self._running = False

    async def resume(self) -> None:
        await self.start()

    def pause(self) -> None:
        """Stop dispatching new batches; in-flight chunks still settle."""
        if not self._running:
            return
        self._paused = True
        logger.info(f"⏸️  Pausing {self._session.session_id}")

    def cancel(self) -> None:
        """Pause and report not-running immediately; the chunk table is left as-is."""
        if self._loop_active:
            self._paused = True
        self._running = False
        logger.info(f"⏹️  Cancelled {self._session.session_id}")

    async def retry_failed_chunks(self) -> None:
        """
        Re-transfer failed chunks still under the retry ceiling, in parallel.

        Clears their failed flag first (retry_count is kept). Chunks at the
        ceiling are left failed. Independent of whether the loop is running.
        """
        eligible = [
            chunk.index for chunk in self._session.failed_chunks
            if chunk.retry_count < self.max_retries
        ]
        if not eligible:
            return
        if self._source is None:
            logger.warning(f"⚠️ Cannot retry chunks of {self._session.session_id}: no data source bound")
            return

        logger.info(f"🔁 Retrying {len(eligible)} failed chunk(s) of {self._session.session_id}")
        self._session = self._session.with_failures_cleared(eligible)
        self._persist()

        await asyncio.gather(*(self._upload_chunk(index) for index in eligible))

        if not self._loop_active and self._session.is_complete:
            self._complete()

    # ==================== Internals ====================

    async def _dispatch_loop(self) -> bool:
        """Returns True when no dispatchable chunk is left, False when paused."""
        while True:
            pending = self._dispatchable_indices()
            if not pending:
                return True
            if self._paused:
                return False

            batch = pending[:self.max_parallel]
            logger.debug(f"Dispatching chunks {batch} of {self._session.session_id}")
            await asyncio.gather(*(self._upload_chunk(index) for index in batch))

            if self._paused:
                return False
            if self._session.is_complete:
                return True

            await asyncio.sleep(self.batch_delay)

    def _dispatchable_indices(self) -> List[int]:
        # Chunks that already failed max_retries times in this run wait for
        # an explicit start/resume.
        return [
            index for index in self._session.pending_indices
            if self._run_failures.get(index, 0) < self.max_retries
        ]

    async def _reconcile_remote_chunks(self) -> None:
        remote = await self._client.list_remote_chunks(self._session.session_id)
        for index in remote:
            if not 0 <= index < self._session.total_chunks:
                logger.warning(f"⚠️ Remote reported unknown chunk {index} for {self._session.session_id}")
                continue
            if not self._session.chunks[index].uploaded:
                self._apply_outcome(index, uploaded=True, failed=False)
        if remote:
            logger.info(f"♻️ Remote already holds {len(remote)} chunk(s) of {self._session.session_id}")

    async def _upload_chunk(self, index: int) -> bool:
        byte_range = self._ranges[index]
        async with self._semaphore:
            self._in_flight += 1
            try:
                data = await self._read(byte_range)
                await self._client.transfer(
                    self._session.session_id,
                    index,
                    self._session.total_chunks,
                    data
                )
            except Exception as e:
                logger.warning(f"✗ Failed to upload chunk {index} of {self._session.session_id}: {e}")
                self._run_failures[index] = self._run_failures.get(index, 0) + 1
                self._apply_outcome(index, uploaded=False, failed=True)
                return False
            else:
                self._apply_outcome(index, uploaded=True, failed=False)
                return True
            finally:
                self._in_flight -= 1

    async def _read(self, byte_range: ByteRange) -> bytes:
        if self._source is None:
            raise MissingDataSourceError(self._session.session_id)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._source.read, byte_range.start, byte_range.end)

    def _apply_outcome(self, index: int, uploaded: bool, failed: bool) -> None:
        self._session = self._store.apply_chunk_outcome(self._session, index, uploaded, failed)
        self._persist()
        if self._on_progress is not None:
            self._on_progress(self._session)

    def _persist(self) -> None:
        self._store.save(self._session)

    def _complete(self) -> None:
        self._running = False
        self._paused = False
        if self._completion_notified:
            return
        self._completion_notified = True
        logger.info(
            f"✅ Upload {self._session.session_id} completed "
            f"({self._session.file_name}, {self._session.total_chunks} chunks)"
        )
        if self._on_complete is not None:
            self._on_complete(self._session)

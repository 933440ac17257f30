"""
Pydantic schemas for upload sessions and their chunk tables

Models are frozen: every status transition returns a new snapshot instead of
mutating the one other tasks may still be holding.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def calculate_total_chunks(file_size: int, chunk_size: int) -> int:
    """Number of chunks for a file; an empty file still has one (empty) chunk."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"file_size must not be negative, got {file_size}")
    if file_size == 0:
        return 1
    return (file_size + chunk_size - 1) // chunk_size


class SpeedTier(str, Enum):
    """Named latency windows for the simulated transfer client."""
    FAST = "fast"
    NORMAL = "normal"
    SLOW = "slow"
    VERY_SLOW = "verySlow"

    @property
    def delay_range_ms(self) -> Tuple[int, int]:
        return SPEED_TIER_DELAYS_MS[self]

    @property
    def label(self) -> str:
        return SPEED_TIER_LABELS[self]


SPEED_TIER_DELAYS_MS = {
    SpeedTier.FAST: (50, 150),
    SpeedTier.NORMAL: (150, 300),
    SpeedTier.SLOW: (500, 1000),
    SpeedTier.VERY_SLOW: (1000, 2000),
}

SPEED_TIER_LABELS = {
    SpeedTier.FAST: "Fast",
    SpeedTier.NORMAL: "Normal",
    SpeedTier.SLOW: "Slow",
    SpeedTier.VERY_SLOW: "Very Slow",
}


class UploadStatus(str, Enum):
    """Externally observed state of a session's upload."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STALLED = "stalled"  # main pass finished with failed chunks left
    NEEDS_SOURCE = "needs_source"


class ByteRange(BaseModel):
    """Half-open byte range [start, end) of one chunk"""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)

    @property
    def length(self) -> int:
        return self.end - self.start


class ChunkRecord(BaseModel):
    """Persisted status of one chunk"""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    uploaded: bool = False
    failed: bool = False
    retry_count: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _check_flags(self) -> "ChunkRecord":
        if self.uploaded and self.failed:
            raise ValueError(f"chunk {self.index} cannot be both uploaded and failed")
        return self


class UploadSessionState(BaseModel):
    """
    One logical upload attempt for one file.

    Holds the file identity and the full chunk table. Byte content is never
    part of the session; it comes from a data source bound at runtime.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str = Field(..., min_length=1)
    file_name: str
    file_size: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=1)
    chunk_size: int = Field(..., gt=0)
    chunks: Tuple[ChunkRecord, ...]
    created_at: datetime
    last_update: datetime

    @model_validator(mode="after")
    def _check_chunk_table(self) -> "UploadSessionState":
        expected = calculate_total_chunks(self.file_size, self.chunk_size)
        if self.total_chunks != expected:
            raise ValueError(
                f"total_chunks={self.total_chunks} does not match "
                f"file_size={self.file_size}/chunk_size={self.chunk_size} (expected {expected})"
            )
        if len(self.chunks) != self.total_chunks:
            raise ValueError(
                f"chunk table has {len(self.chunks)} records, expected {self.total_chunks}"
            )
        for position, chunk in enumerate(self.chunks):
            if chunk.index != position:
                raise ValueError(f"chunk at position {position} has index {chunk.index}")
        return self

    @classmethod
    def new(
        cls,
        session_id: str,
        file_name: str,
        file_size: int,
        total_chunks: int,
        chunk_size: int,
    ) -> "UploadSessionState":
        """Fresh session: every chunk not uploaded, not failed, zero retries."""
        now = utcnow()
        return cls(
            session_id=session_id,
            file_name=file_name,
            file_size=file_size,
            total_chunks=total_chunks,
            chunk_size=chunk_size,
            chunks=tuple(ChunkRecord(index=i) for i in range(total_chunks)),
            created_at=now,
            last_update=now,
        )

    # ==================== Derived values ====================

    @property
    def uploaded_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.uploaded)

    @property
    def failed_chunks(self) -> List[ChunkRecord]:
        return [chunk for chunk in self.chunks if chunk.failed and not chunk.uploaded]

    @property
    def failed_indices(self) -> List[int]:
        return [chunk.index for chunk in self.failed_chunks]

    @property
    def pending_indices(self) -> List[int]:
        """Indices not yet uploaded, ascending."""
        return [chunk.index for chunk in self.chunks if not chunk.uploaded]

    @property
    def is_complete(self) -> bool:
        return all(chunk.uploaded for chunk in self.chunks)

    @property
    def progress_percent(self) -> float:
        return 100 * self.uploaded_count / self.total_chunks

    @property
    def uploaded_bytes(self) -> int:
        return self.uploaded_count * self.chunk_size

    # ==================== Non-destructive updates ====================

    def with_chunk_outcome(self, index: int, uploaded: bool, failed: bool = False) -> "UploadSessionState":
        """
        Return a new snapshot with one chunk transitioned.

        failed=True increments retry_count; uploaded=True clears failed.
        All other records and fields are carried over unchanged, except
        last_update which is refreshed.
        """
        if uploaded and failed:
            raise ValueError("a chunk outcome cannot be both uploaded and failed")
        if not 0 <= index < self.total_chunks:
            raise IndexError(f"chunk index {index} out of range for {self.total_chunks} chunks")

        chunk = self.chunks[index]
        updated = chunk.model_copy(update={
            "uploaded": uploaded,
            "failed": failed,
            "retry_count": chunk.retry_count + 1 if failed else chunk.retry_count,
        })
        chunks = self.chunks[:index] + (updated,) + self.chunks[index + 1:]
        return self.model_copy(update={"chunks": chunks, "last_update": utcnow()})

    def with_failures_cleared(self, indices: Iterable[int]) -> "UploadSessionState":
        """Return a new snapshot with the failed flag cleared on the given chunks (retry_count kept)."""
        targets = set(indices)
        for index in targets:
            if not 0 <= index < self.total_chunks:
                raise IndexError(f"chunk index {index} out of range for {self.total_chunks} chunks")
        chunks = tuple(
            chunk.model_copy(update={"failed": False}) if chunk.index in targets else chunk
            for chunk in self.chunks
        )
        return self.model_copy(update={"chunks": chunks, "last_update": utcnow()})


class UploadProgress(BaseModel):
    """Read-only progress snapshot for presentation layers"""
    session_id: str
    file_name: str
    status: UploadStatus
    progress_percent: float
    uploaded_chunks: int
    total_chunks: int
    uploaded_bytes: int
    file_size: int
    failed_chunks: List[int]
    speed_tier: Optional[SpeedTier] = None

"""
File chunking - divides a byte length into fixed-size ranges.

Partitioning is pure: the same (file_size, chunk_size) always yields the
same ranges, so it can be recomputed every time a data source is re-bound.
"""
import uuid
from typing import List

from resumable_upload.schemas.upload import ByteRange, calculate_total_chunks

__all__ = ["partition", "calculate_total_chunks", "generate_session_id"]


def partition(file_size: int, chunk_size: int) -> List[ByteRange]:
    """
    Split [0, file_size) into ranges [0, C), [C, 2C), ...

    The final range may be shorter. An empty file yields exactly one empty
    range so that it still has a chunk to transfer.
    """
    total_chunks = calculate_total_chunks(file_size, chunk_size)
    ranges = []
    for index in range(total_chunks):
        start = index * chunk_size
        end = min(start + chunk_size, file_size)
        ranges.append(ByteRange(index=index, start=start, end=end))
    return ranges


def generate_session_id() -> str:
    """Unique upload session id, generated client-side."""
    return str(uuid.uuid4())

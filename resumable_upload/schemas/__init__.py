"""Schemas module exports"""
from resumable_upload.schemas.upload import (
    ByteRange,
    ChunkRecord,
    SpeedTier,
    SPEED_TIER_DELAYS_MS,
    SPEED_TIER_LABELS,
    UploadProgress,
    UploadSessionState,
    UploadStatus,
    calculate_total_chunks,
)

__all__ = [
    "ByteRange",
    "ChunkRecord",
    "SpeedTier",
    "SPEED_TIER_DELAYS_MS",
    "SPEED_TIER_LABELS",
    "UploadProgress",
    "UploadSessionState",
    "UploadStatus",
    "calculate_total_chunks",
]

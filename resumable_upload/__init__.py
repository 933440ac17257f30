"""Resumable chunked-upload engine."""
from resumable_upload.core.config import settings
from resumable_upload.schemas import UploadSessionState, ChunkRecord, SpeedTier, UploadStatus
from resumable_upload.services import (
    SessionStore,
    UploadScheduler,
    SimulatedTransferClient,
    HttpTransferClient,
    FileSource,
    BytesSource,
    partition,
    generate_session_id,
)

__version__ = settings.APP_VERSION

__all__ = [
    "settings",
    "UploadSessionState",
    "ChunkRecord",
    "SpeedTier",
    "UploadStatus",
    "SessionStore",
    "UploadScheduler",
    "SimulatedTransferClient",
    "HttpTransferClient",
    "FileSource",
    "BytesSource",
    "partition",
    "generate_session_id",
]

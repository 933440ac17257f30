"""Services module exports"""
from resumable_upload.services.chunker import partition, calculate_total_chunks, generate_session_id
from resumable_upload.services.source import DataSource, FileSource, BytesSource, matches_session, validate_source
from resumable_upload.services.session_store import SessionStore
from resumable_upload.services.transfer import TransferClient, SimulatedTransferClient, HttpTransferClient
from resumable_upload.services.scheduler import UploadScheduler

__all__ = [
    "partition",
    "calculate_total_chunks",
    "generate_session_id",
    "DataSource",
    "FileSource",
    "BytesSource",
    "matches_session",
    "validate_source",
    "SessionStore",
    "TransferClient",
    "SimulatedTransferClient",
    "HttpTransferClient",
    "UploadScheduler",
]

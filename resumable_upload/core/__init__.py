"""Core module exports"""
from .config import settings
from .database import engine, SessionLocal, build_engine, build_session_factory, get_db
from .exceptions import (
    UploadError,
    ChunkTransferError,
    SourceMismatchError,
    MissingDataSourceError,
    SessionNotFoundError,
)

__all__ = [
    "settings",
    "engine",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "get_db",
    "UploadError",
    "ChunkTransferError",
    "SourceMismatchError",
    "MissingDataSourceError",
    "SessionNotFoundError",
]

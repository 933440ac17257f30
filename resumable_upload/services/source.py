"""
Data sources that supply chunk bytes for a session.

A source is bound to a session at runtime only. It is never persisted and
must be re-bound (and re-validated) after every restart.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from resumable_upload.core.exceptions import SourceMismatchError
from resumable_upload.schemas.upload import UploadSessionState

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """Readable byte source with a known name and size."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def size(self) -> int:
        ...

    @abstractmethod
    def read(self, start: int, end: int) -> bytes:
        """Read bytes in [start, end)."""

    def __repr__(self):
        return f"<{type(self).__name__}(name={self.name}, size={self.size})>"


class FileSource(DataSource):
    """Data source backed by a file on disk."""

    def __init__(self, path):
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"File not found: {self.path}")
        self._size = self.path.stat().st_size

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def size(self) -> int:
        return self._size

    def read(self, start: int, end: int) -> bytes:
        with open(self.path, "rb") as f:
            f.seek(start)
            return f.read(end - start)


class BytesSource(DataSource):
    """In-memory data source."""

    def __init__(self, name: str, data: bytes):
        self._name = name
        self._data = bytes(data)

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return len(self._data)

    def read(self, start: int, end: int) -> bytes:
        return self._data[start:end]


def matches_session(source: DataSource, session: UploadSessionState) -> bool:
    """Name and size must equal the session's recorded file identity."""
    return source.name == session.file_name and source.size == session.file_size


def validate_source(source: DataSource, session: UploadSessionState) -> None:
    """Raise SourceMismatchError if the source is not the session's file."""
    if not matches_session(source, session):
        logger.warning(
            f"⚠️ Source {source.name} ({source.size} bytes) does not match session "
            f"{session.session_id} ({session.file_name}, {session.file_size} bytes)"
        )
        raise SourceMismatchError(
            session_id=session.session_id,
            expected_name=session.file_name,
            expected_size=session.file_size,
            actual_name=source.name,
            actual_size=source.size,
        )

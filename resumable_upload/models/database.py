"""
Database models for persisted upload sessions

One row per session. The full session snapshot (file identity plus chunk
table) lives in the payload column as JSON; chunk bytes are never stored.
"""
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


class UploadSessionRecord(Base):
    """Upload session snapshot keyed by session id."""
    __tablename__ = "upload_sessions"
    
    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    
    def __repr__(self):
        return f"<UploadSessionRecord(session_id={self.session_id}, file_name={self.file_name})>"

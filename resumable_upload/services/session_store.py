"""
Durable session state store backed by SQLAlchemy.

Stores one snapshot per session (file identity plus chunk table). Writes are
best-effort: a failed save is logged and never interrupts an upload, and the
next successful save carries all accumulated state forward. Unreadable rows
are treated as if the session did not exist.
"""
import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from resumable_upload.core.database import SessionLocal, build_session_factory, engine as default_engine, get_db
from resumable_upload.models import Base, UploadSessionRecord
from resumable_upload.schemas.upload import UploadSessionState, utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    """Persistence of upload session snapshots keyed by session id"""

    def __init__(self, engine=None):
        if engine is None:
            self.engine = default_engine
            self._session_factory = SessionLocal
        else:
            self.engine = engine
            self._session_factory = build_session_factory(engine)
        self.init_schema()

    def init_schema(self) -> None:
        """Create the sessions table if it doesn't exist"""
        Base.metadata.create_all(bind=self.engine)

    def create(
        self,
        session_id: str,
        file_name: str,
        file_size: int,
        total_chunks: int,
        chunk_size: int
    ) -> UploadSessionState:
        """Initialize a fresh session and persist it."""
        state = UploadSessionState.new(session_id, file_name, file_size, total_chunks, chunk_size)
        self.save(state)
        logger.info(f"✅ Created upload session {session_id} for {file_name} ({total_chunks} chunks)")
        return state

    def save(self, state: UploadSessionState) -> bool:
        """
        Persist the full snapshot, overwriting any previous one for the id.

        Returns False (after logging) if the write failed.
        """
        payload = state.model_dump_json()
        try:
            with get_db(self._session_factory) as db:
                record = db.get(UploadSessionRecord, state.session_id)
                if record is None:
                    db.add(UploadSessionRecord(
                        session_id=state.session_id,
                        file_name=state.file_name,
                        payload=payload
                    ))
                else:
                    record.file_name = state.file_name
                    record.payload = payload
                    record.updated_at = utcnow()
            return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to save upload state {state.session_id}: {e}")
            return False

    def load(self, session_id: str) -> Optional[UploadSessionState]:
        """Last saved snapshot, or None if missing or unreadable."""
        try:
            with get_db(self._session_factory) as db:
                record = db.get(UploadSessionRecord, session_id)
                payload = record.payload if record is not None else None
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load upload state {session_id}: {e}")
            return None

        if payload is None:
            return None
        return self._parse(session_id, payload)

    def list_all(self) -> List[UploadSessionState]:
        """
        Every readable session, oldest first.

        Rows are loaded one at a time so that a single undecodable payload
        only hides its own session.
        """
        try:
            with get_db(self._session_factory) as db:
                session_ids = db.scalars(select(UploadSessionRecord.session_id)).all()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to list upload states: {e}")
            return []

        states = []
        for session_id in session_ids:
            state = self.load(session_id)
            if state is not None:
                states.append(state)
        states.sort(key=lambda s: s.created_at)
        return states

    def list_incomplete(self) -> List[UploadSessionState]:
        return [state for state in self.list_all() if not state.is_complete]

    def list_completed(self) -> List[UploadSessionState]:
        return [state for state in self.list_all() if state.is_complete]

    def delete(self, session_id: str) -> bool:
        """
        Remove a session snapshot irreversibly.

        Deleting an unknown id is a no-op. Returns True if a row was removed.
        """
        try:
            with get_db(self._session_factory) as db:
                record = db.get(UploadSessionRecord, session_id)
                if record is None:
                    return False
                db.delete(record)
            logger.info(f"🗑️  Deleted upload session {session_id}")
            return True
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to delete upload state {session_id}: {e}")
            return False

    @staticmethod
    def apply_chunk_outcome(
        state: UploadSessionState,
        index: int,
        uploaded: bool,
        failed: bool = False
    ) -> UploadSessionState:
        """New snapshot with only the addressed chunk transitioned; the input is left untouched."""
        return state.with_chunk_outcome(index, uploaded, failed)

    @staticmethod
    def _parse(session_id: str, payload: str) -> Optional[UploadSessionState]:
        try:
            state = UploadSessionState.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(f"⚠️ Ignoring corrupt upload state {session_id}: {e.error_count()} error(s)")
            return None
        if state.session_id != session_id:
            logger.warning(f"⚠️ Ignoring upload state {session_id}: payload belongs to {state.session_id}")
            return None
        return state

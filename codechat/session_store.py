"""
Relational metadata store for sessions, uploaded files and conversation turns.

Every method runs on a synchronous SQLAlchemy session; async callers go
through `run_in_threadpool`. Failures of the database are re-raised as
`UpstreamStorageError`.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from codechat.errors import UpstreamStorageError
from codechat.models_db import Conversation, Session, UploadedFile

logger = logging.getLogger(__name__)


class ChatStore:
    def __init__(self, db: DBSession, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to %s: %s", action, e)
            raise UpstreamStorageError(f"Failed to {action}: {e}") from e

    def ensure_session(self, session_id: str) -> Session:
        """Create the session row on first use, otherwise bump `last_activity`."""
        with self._guard("create session"):
            now = self.clock()
            session = self.db.query(Session).filter(Session.session_id == session_id).first()
            if session is None:
                session = Session(session_id=session_id, created_at=now, last_activity=now)
                self.db.add(session)
            else:
                session.last_activity = now
            self.db.commit()
            self.db.refresh(session)
            return session

    def record_file(
        self,
        session_id: str,
        *,
        filename: str,
        original_name: str,
        file_path: str,
        file_size: int,
        mime_type: Optional[str],
        storage_path: str,
    ) -> UploadedFile:
        with self._guard("save file metadata"):
            uploaded = UploadedFile(
                session_id=session_id,
                filename=filename,
                original_name=original_name,
                file_path=file_path,
                file_size=file_size,
                mime_type=mime_type,
                storage_path=storage_path,
                uploaded_at=self.clock(),
            )
            self.db.add(uploaded)
            self.db.commit()
            self.db.refresh(uploaded)
            return uploaded

    def get_session_files(self, session_id: str) -> List[UploadedFile]:
        """Files of a session, most recently uploaded first."""
        with self._guard("fetch files"):
            return (
                self.db.query(UploadedFile)
                .filter(UploadedFile.session_id == session_id)
                .order_by(UploadedFile.uploaded_at.desc())
                .all()
            )

    def get_file(self, file_id: str) -> Optional[UploadedFile]:
        with self._guard("fetch file"):
            return self.db.query(UploadedFile).filter(UploadedFile.id == file_id).first()

    def delete_file_record(self, file_id: str) -> None:
        with self._guard("delete file metadata"):
            self.db.query(UploadedFile).filter(UploadedFile.id == file_id).delete()
            self.db.commit()

    def save_message(self, session_id: str, role: str, content: str) -> Conversation:
        with self._guard("save message"):
            turn = Conversation(
                session_id=session_id,
                role=role,
                content=content,
                created_at=self.clock(),
            )
            self.db.add(turn)
            self.db.commit()
            self.db.refresh(turn)
            return turn

    def get_conversation_history(self, session_id: str) -> List[Conversation]:
        with self._guard("fetch conversation"):
            return (
                self.db.query(Conversation)
                .filter(Conversation.session_id == session_id)
                .order_by(Conversation.created_at, Conversation.id)
                .all()
            )

    def delete_session(self, session_id: str) -> None:
        """Drop the session row together with its files and turns."""
        with self._guard("delete session"):
            self.db.query(UploadedFile).filter(UploadedFile.session_id == session_id).delete()
            self.db.query(Conversation).filter(Conversation.session_id == session_id).delete()
            self.db.query(Session).filter(Session.session_id == session_id).delete()
            self.db.commit()

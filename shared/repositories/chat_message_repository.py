"""Chat message data access layer."""
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session as DBSession

from shared.models.entities import ChatMessageRecord

logger = logging.getLogger(__name__)


class ChatMessageRepository:
    """Repository for persisted chat history, keyed by syllabus and user."""

    def __init__(self, db: DBSession):
        self.db = db

    def _query(self, syllabus_id: int, username: str):
        return self.db.query(ChatMessageRecord).filter(
            ChatMessageRecord.syllabus_id == syllabus_id,
            ChatMessageRecord.username == username,
        )

    def list_messages(
        self,
        syllabus_id: int,
        username: str,
        limit: Optional[int] = None,
    ) -> list[ChatMessageRecord]:
        """
        Return messages oldest-first.

        Args:
            syllabus_id: Syllabus identifier
            username: Editing user
            limit: If given, only the most recent `limit` messages

        Returns:
            List of ChatMessageRecord in chronological order
        """
        query = self._query(syllabus_id, username)
        if limit is not None:
            rows = (
                query.order_by(ChatMessageRecord.created_at.desc(), ChatMessageRecord.id.desc())
                .limit(limit)
                .all()
            )
            return list(reversed(rows))
        return query.order_by(ChatMessageRecord.created_at.asc(), ChatMessageRecord.id.asc()).all()

    def create(self, syllabus_id: int, username: str, role: str, content: str) -> ChatMessageRecord:
        record = ChatMessageRecord(
            syllabus_id=syllabus_id,
            username=username,
            role=role,
            content=content,
            created_at=datetime.utcnow(),
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def clear(self, syllabus_id: int, username: str) -> int:
        """
        Delete a user's chat history for a syllabus.

        Returns:
            Number of deleted messages
        """
        deleted = self._query(syllabus_id, username).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"Cleared {deleted} chat messages for syllabus {syllabus_id} ({username})")
        return deleted

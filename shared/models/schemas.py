"""Pydantic API request/response schemas."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from typing import List, Optional


class ChatMessageResponse(BaseModel):
    """A persisted chat message."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str
    content: str
    created_at: Optional[datetime] = None


class ChatHistoryResponse(BaseModel):
    """Persisted chat history for one syllabind and user."""
    syllabus_id: int
    messages: List[ChatMessageResponse]


class ClearChatResponse(BaseModel):
    """Result of deleting a chat history."""
    syllabus_id: int
    deleted: int

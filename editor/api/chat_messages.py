"""Persisted chat history API endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession

from database import get_db
from shared.models.schemas import ChatHistoryResponse, ChatMessageResponse, ClearChatResponse
from shared.repositories import ChatMessageRepository, SyllabusRepository
from shared.utils.exceptions import SyllabindException, SyllabusNotFoundException
from editor.api.dependencies import ChatServices, get_chat_services, get_current_username

logger = logging.getLogger("editor.api")

router = APIRouter(prefix="/syllabinds", tags=["chat"])


def _require_syllabus(db: DBSession, syllabus_id: int) -> None:
    if SyllabusRepository(db).get_by_id(syllabus_id) is None:
        raise SyllabusNotFoundException(syllabus_id)


@router.get("/{syllabus_id}/chat-messages", response_model=ChatHistoryResponse)
def list_chat_messages(
    syllabus_id: int,
    username: str = Depends(get_current_username),
    db: DBSession = Depends(get_db),
):
    """Get the persisted chat history for a syllabind, oldest first."""
    try:
        _require_syllabus(db, syllabus_id)
        records = ChatMessageRepository(db).list_messages(syllabus_id, username)
        return ChatHistoryResponse(
            syllabus_id=syllabus_id,
            messages=[ChatMessageResponse.model_validate(r) for r in records],
        )
    except SyllabindException as e:
        raise e.to_http_exception()


@router.delete("/{syllabus_id}/chat-messages", response_model=ClearChatResponse)
def clear_chat_messages(
    syllabus_id: int,
    username: str = Depends(get_current_username),
    db: DBSession = Depends(get_db),
    services: ChatServices = Depends(get_chat_services),
):
    """Delete the persisted chat history. Refused while a chat channel is open."""
    try:
        _require_syllabus(db, syllabus_id)
    except SyllabindException as e:
        raise e.to_http_exception()

    if services.conversations.owner_of(username, syllabus_id) is not None:
        raise HTTPException(status_code=409, detail="Chat is open; clear it from the chat window")

    deleted = ChatMessageRepository(db).clear(syllabus_id, username)
    services.conversations.forget(username, syllabus_id)
    return ClearChatResponse(syllabus_id=syllabus_id, deleted=deleted)

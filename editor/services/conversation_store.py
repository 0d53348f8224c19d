"""
Conversation Store

Keeps one ConversationState per (username, syllabus) alive across
reconnects, hydrating it from persisted chat messages on first use and
writing finished messages back.
"""

import asyncio
import functools
import logging
import threading
from typing import Any, Optional

from database import DatabaseManager
from shared.repositories.chat_message_repository import ChatMessageRepository
from editor.models.conversation import ChatMessage, ConversationState

logger = logging.getLogger("editor.conversation_store")

ConversationKey = tuple[str, int]


class ConversationStore:
    """
    Process-wide registry of live conversations.

    Each conversation has at most one owner (the engine of the live channel).
    Claiming a conversation that already has an owner hands back the old
    owner so the caller can close it.
    """

    def __init__(self, db_manager: DatabaseManager, history_limit: int = 10):
        self.db_manager = db_manager
        self.history_limit = history_limit
        self._states: dict[ConversationKey, ConversationState] = {}
        self._owners: dict[ConversationKey, Any] = {}
        self._guard = threading.Lock()

    # Loading

    def _load_history(self, username: str, syllabus_id: int) -> list[ChatMessage]:
        with self.db_manager.session_scope() as session:
            records = ChatMessageRepository(session).list_messages(
                syllabus_id, username, limit=self.history_limit
            )
            return [
                ChatMessage(role=r.role, content=r.content, timestamp=r.created_at)
                for r in records
            ]

    async def load(self, username: str, syllabus_id: int) -> ConversationState:
        """Return the retained conversation, hydrating it from the database on first use."""
        key = (username, syllabus_id)
        with self._guard:
            state = self._states.get(key)
        if state is not None:
            return state

        loop = asyncio.get_running_loop()
        history = await loop.run_in_executor(None, self._load_history, username, syllabus_id)
        with self._guard:
            # A concurrent load may have won the race
            state = self._states.setdefault(
                key, ConversationState(username=username, syllabus_id=syllabus_id, history=history)
            )
        logger.info(f"Loaded conversation for syllabus {syllabus_id} ({username}): {len(state.history)} messages")
        return state

    # Ownership

    def claim(self, state: ConversationState, owner: Any) -> Optional[Any]:
        """Make `owner` the live owner of the conversation; return the displaced owner, if any."""
        key = (state.username, state.syllabus_id)
        with self._guard:
            previous = self._owners.get(key)
            self._owners[key] = owner
        if previous is not None and previous is not owner:
            logger.info(f"Conversation for syllabus {state.syllabus_id} ({state.username}) taken over by a new channel")
            return previous
        return None

    def release(self, state: ConversationState, owner: Any) -> None:
        """
        Drop ownership if `owner` still holds it.

        An unowned conversation is evicted from memory; the next load
        rehydrates it from the persisted history.
        """
        key = (state.username, state.syllabus_id)
        with self._guard:
            if self._owners.get(key) is owner:
                del self._owners[key]
                if self._states.get(key) is state:
                    del self._states[key]

    def owner_of(self, username: str, syllabus_id: int) -> Optional[Any]:
        with self._guard:
            return self._owners.get((username, syllabus_id))

    # Persistence

    def _persist(self, username: str, syllabus_id: int, message: ChatMessage) -> None:
        with self.db_manager.session_scope() as session:
            ChatMessageRepository(session).create(syllabus_id, username, message.role, message.content)

    def _clear(self, username: str, syllabus_id: int) -> int:
        with self.db_manager.session_scope() as session:
            return ChatMessageRepository(session).clear(syllabus_id, username)

    async def persist(self, state: ConversationState, message: ChatMessage) -> None:
        """Write a message that is already in the conversation's history."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, functools.partial(self._persist, state.username, state.syllabus_id, message)
        )

    async def append(self, state: ConversationState, message: ChatMessage) -> None:
        """Append a finished message, keep the last `history_limit` in memory and persist it."""
        state.append_message(message)
        state.trim_history(self.history_limit)
        await self.persist(state, message)

    async def clear(self, state: ConversationState) -> int:
        """Empty the conversation and its persisted history; the binding is kept."""
        state.clear()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._clear, state.username, state.syllabus_id)

    def forget(self, username: str, syllabus_id: int) -> None:
        """Drop a retained conversation from memory (next load re-hydrates)."""
        with self._guard:
            self._states.pop((username, syllabus_id), None)

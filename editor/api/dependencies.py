"""
Chat editor service wiring.

Builds the process-wide collaborators shared by every chat session and
hands out one engine per open channel.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Query

from config import Settings, get_settings
from database import DatabaseManager, get_db_manager
from shared.services.anthropic_adapter import AnthropicAdapter
from shared.services.web_search import WebSearchService, get_web_search_service
from shared.utils.rate_limiter import get_rate_limiter
from editor.agents.base_agent import BaseChatAgent
from editor.agents.syllabind_agent import SyllabindChatAgent
from editor.models.conversation import ConversationState
from editor.orchestration.engine import ChatSessionEngine, CloseHook, Emitter
from editor.services.conversation_store import ConversationStore
from editor.services.document_store import DocumentStore
from editor.services.mutation_applier import MutationApplier
from editor.tools.registry import ToolContext, ToolRegistry, build_default_registry

logger = logging.getLogger("editor.api")


@dataclass
class ChatServices:
    """Collaborators shared by all chat sessions in the process."""

    settings: Settings
    document_store: DocumentStore
    conversations: ConversationStore
    applier: MutationApplier
    registry: ToolRegistry
    agent: BaseChatAgent
    search: Optional[WebSearchService] = None
    confirmation_timeout: Optional[float] = field(default=None)

    def create_engine(
        self,
        conversation: ConversationState,
        emit: Emitter,
        on_close: Optional[CloseHook] = None,
    ) -> ChatSessionEngine:
        context = ToolContext(
            syllabus_id=conversation.syllabus_id,
            store=self.document_store,
            applier=self.applier,
            search=self.search,
        )
        return ChatSessionEngine(
            conversation=conversation,
            conversations=self.conversations,
            registry=self.registry,
            tool_context=context,
            agent=self.agent,
            emit=emit,
            max_tool_iterations=self.settings.max_tool_iterations,
            confirmation_timeout=self.confirmation_timeout,
            on_close=on_close,
        )


def build_chat_services(
    settings: Optional[Settings] = None,
    db_manager: Optional[DatabaseManager] = None,
    agent: Optional[BaseChatAgent] = None,
    search: Optional[WebSearchService] = None,
    registry: Optional[ToolRegistry] = None,
) -> ChatServices:
    """
    Wire the chat editor collaborators.

    Any collaborator not supplied is built from settings.
    """
    settings = settings or get_settings()
    db_manager = db_manager or get_db_manager()

    if agent is None:
        adapter = AnthropicAdapter(
            api_key=settings.anthropic_api_key,
            timeout=settings.llm_timeout_seconds,
            model=settings.llm_model,
        )
        agent = SyllabindChatAgent(adapter, get_rate_limiter(), max_tokens=settings.llm_max_tokens)
    if search is None:
        search = get_web_search_service()

    document_store = DocumentStore(db_manager)
    return ChatServices(
        settings=settings,
        document_store=document_store,
        conversations=ConversationStore(db_manager, history_limit=settings.chat_history_limit),
        applier=MutationApplier(document_store),
        registry=registry or build_default_registry(),
        agent=agent,
        search=search,
        confirmation_timeout=settings.confirmation_timeout_seconds,
    )


_chat_services: Optional[ChatServices] = None


def get_chat_services() -> ChatServices:
    """Get or create the process-wide chat services (FastAPI dependency)."""
    global _chat_services
    if _chat_services is None:
        _chat_services = build_chat_services()
        logger.info("Chat services initialized")
    return _chat_services


def reset_chat_services() -> None:
    """Reset the process-wide chat services (useful for testing)."""
    global _chat_services
    _chat_services = None


def get_current_username(username: str = Query(default="anonymous", min_length=1)) -> str:
    """
    Identity of the editing user.

    Authentication is handled upstream; deployments override this dependency
    with one that reads the authenticated session.
    """
    return username

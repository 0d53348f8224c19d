"""
Base Agent for the Chat Editor

Abstract base class for the conversational model capability. Wraps the
concrete event stream with logging and error mapping.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional
import json
import time
import logging

from shared.models.domain import SyllabusSnapshot, TextFragment, ToolCallRequest
from shared.services.anthropic_adapter import ModelEvent
from editor.exceptions import EditorError, ModelUnavailableError
from editor.models.conversation import ChatMessage, ToolExchange


logger = logging.getLogger("editor.agents")


class BaseChatAgent(ABC):
    """
    Abstract base class for chat agents.

    `converse()` streams TextFragment and ToolCallRequest events for one model
    call. Any failure surfaces as ModelUnavailableError.
    """

    @property
    @abstractmethod
    def agent_name(self) -> str:
        ...

    @abstractmethod
    def _stream(
        self,
        history: List[ChatMessage],
        exchanges: List[ToolExchange],
        tool_schemas: List[Dict[str, Any]],
        syllabus: Optional[SyllabusSnapshot],
    ) -> AsyncIterator[ModelEvent]:
        ...

    async def converse(
        self,
        history: List[ChatMessage],
        exchanges: List[ToolExchange],
        tool_schemas: List[Dict[str, Any]],
        syllabus: Optional[SyllabusSnapshot] = None,
    ) -> AsyncIterator[ModelEvent]:
        """
        Run one model call over the conversation so far.

        Args:
            history: Finished chat messages, ending with the current user message
            exchanges: Tool calls already resolved in the current turn
            tool_schemas: Tool definitions offered to the model
            syllabus: Current document, used for the system prompt

        Yields:
            TextFragment and ToolCallRequest events in arrival order

        Raises:
            ModelUnavailableError: If the model call fails
        """
        start_time = time.time()
        fragments = 0
        tool_calls = 0

        logger.info(json.dumps({
            "agent": self.agent_name,
            "event": "started",
            "history": len(history),
            "exchanges": len(exchanges),
        }))

        try:
            async for event in self._stream(history, exchanges, tool_schemas, syllabus):
                if isinstance(event, TextFragment):
                    fragments += 1
                elif isinstance(event, ToolCallRequest):
                    tool_calls += 1
                yield event

        except EditorError:
            raise

        except Exception as e:
            logger.error(json.dumps({
                "agent": self.agent_name,
                "event": "failed",
                "error": str(e),
                "duration_ms": int((time.time() - start_time) * 1000),
            }))
            raise ModelUnavailableError(f"Model call failed: {e}") from e

        logger.info(json.dumps({
            "agent": self.agent_name,
            "event": "completed",
            "fragments": fragments,
            "tool_calls": tool_calls,
            "duration_ms": int((time.time() - start_time) * 1000),
        }))

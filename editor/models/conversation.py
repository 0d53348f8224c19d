"""
Conversation State Models

Chat history, tool invocation lifecycle and the per-session conversation state.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

from editor.exceptions import OutstandingToolError, StateTransitionError


class ChatMessage(BaseModel):
    """A finished chat message in the conversation history."""

    role: Literal["user", "assistant"] = Field(description="Role of the message sender")
    content: str = Field(description="Message text; assistant prose may carry HTML")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the message was created")


class EngineState(str, Enum):
    """Session protocol engine states."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    STREAMING_ASSISTANT = "streaming_assistant"
    AWAITING_TOOL_CONFIRMATION = "awaiting_tool_confirmation"
    EXECUTING_TOOL = "executing_tool"
    CLOSED = "closed"


class InvocationStatus(str, Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    EXECUTED = "executed"
    FAILED = "failed"


_INVOCATION_TRANSITIONS: dict[InvocationStatus, set[InvocationStatus]] = {
    InvocationStatus.PROPOSED: {
        InvocationStatus.CONFIRMED,
        InvocationStatus.REJECTED,
        InvocationStatus.EXECUTED,
        InvocationStatus.FAILED,
    },
    InvocationStatus.CONFIRMED: {InvocationStatus.EXECUTED, InvocationStatus.FAILED},
    InvocationStatus.REJECTED: set(),
    InvocationStatus.EXECUTED: set(),
    InvocationStatus.FAILED: set(),
}


class ToolInvocation(BaseModel):
    """One tool call requested by the model, tracked through its lifecycle."""

    tool_id: str
    tool_name: str
    params: dict[str, Any] = Field(default_factory=dict)
    status: InvocationStatus = InvocationStatus.PROPOSED
    result: Optional[Any] = None
    error: Optional[dict[str, Any]] = None

    @property
    def is_resolved(self) -> bool:
        return self.status in (InvocationStatus.REJECTED, InvocationStatus.EXECUTED, InvocationStatus.FAILED)

    def _move(self, to: InvocationStatus) -> None:
        if to not in _INVOCATION_TRANSITIONS[self.status]:
            raise StateTransitionError(self.status.value, to.value, f"tool invocation {self.tool_id}")
        self.status = to

    def confirm(self) -> None:
        self._move(InvocationStatus.CONFIRMED)

    def reject(self) -> None:
        self._move(InvocationStatus.REJECTED)

    def mark_executed(self, result: Any) -> None:
        self._move(InvocationStatus.EXECUTED)
        self.result = result

    def mark_failed(self, error: dict[str, Any]) -> None:
        self._move(InvocationStatus.FAILED)
        self.error = error


class ToolExchange(BaseModel):
    """A resolved tool call and the result fed back to the model."""

    invocation: ToolInvocation
    preceding_text: str = ""
    result_content: str
    is_error: bool = False


class ConversationState(BaseModel):
    """Conversation for one (user, syllabus) pair, retained across reconnects."""

    username: str
    syllabus_id: int
    history: list[ChatMessage] = Field(default_factory=list)
    outstanding_tool: Optional[ToolInvocation] = None
    is_streaming: bool = False

    def append_message(self, message: ChatMessage) -> None:
        self.history.append(message)

    def trim_history(self, limit: int) -> None:
        """Keep only the most recent `limit` messages."""
        if len(self.history) > limit:
            self.history = self.history[-limit:] if limit > 0 else []

    def propose_tool(self, invocation: ToolInvocation) -> None:
        """Register a proposed invocation; only one may be unresolved at a time."""
        if self.outstanding_tool is not None and not self.outstanding_tool.is_resolved:
            raise OutstandingToolError(self.outstanding_tool.tool_name, invocation.tool_name)
        self.outstanding_tool = invocation

    def resolve_tool(self) -> Optional[ToolInvocation]:
        invocation = self.outstanding_tool
        self.outstanding_tool = None
        return invocation

    def clear(self) -> None:
        """Drop history but keep the syllabus binding."""
        self.history = []
        self.outstanding_tool = None
        self.is_streaming = False

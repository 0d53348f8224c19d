"""
Message Models

WebSocket protocol frames exchanged with the chat editor client.
"""

from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from editor.models.conversation import ChatMessage


# Client -> Server

ClientMessageType = Literal["init", "user_message", "tool_confirmed", "clear_chat"]


class ClientMessage(BaseModel):
    """Inbound frame from the editor client."""

    model_config = ConfigDict(populate_by_name=True)

    type: ClientMessageType = Field(description="Type of client message")
    content: Optional[str] = Field(default=None, description="User text for user_message")
    tool_id: Optional[str] = Field(default=None, alias="toolId", description="Tool id for tool_confirmed")
    approved: Optional[bool] = Field(default=None, description="User decision for tool_confirmed")

    @model_validator(mode="after")
    def _check_required_fields(self) -> "ClientMessage":
        if self.type == "user_message" and not (self.content and self.content.strip()):
            raise ValueError("user_message requires non-empty content")
        if self.type == "tool_confirmed" and (self.tool_id is None or self.approved is None):
            raise ValueError("tool_confirmed requires toolId and approved")
        return self


# Server -> Client

ServerMessageType = Literal[
    "history",
    "tool_thinking",
    "confirm_tool",
    "assistant_chunk",
    "assistant_complete",
    "tool_executed",
    "chat_cleared",
    "error",
]


class HistoryItemDTO(BaseModel):
    role: str
    content: str


class ToolPayload(BaseModel):
    tool: str


class ThinkingPayload(ToolPayload):
    label: Optional[str] = None


class ConfirmToolPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_id: str = Field(alias="toolId")
    tool: str
    message: str


class ChunkPayload(BaseModel):
    text: str


class CompletePayload(BaseModel):
    message: str


class ErrorPayload(BaseModel):
    message: str


class ServerMessage(BaseModel):
    """Outbound frame to the editor client."""

    type: ServerMessageType = Field(description="Type of server message")
    data: Optional[Any] = None

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict; frames without data carry only their type."""
        frame: dict[str, Any] = {"type": self.type}
        if self.data is not None:
            frame["data"] = self.data
        return frame


# Factory Functions

def create_history_message(history: list[ChatMessage]) -> ServerMessage:
    items = [HistoryItemDTO(role=m.role, content=m.content).model_dump() for m in history]
    return ServerMessage(type="history", data=items)


def create_tool_thinking(tool: str, label: Optional[str] = None) -> ServerMessage:
    payload = ThinkingPayload(tool=tool, label=label)
    return ServerMessage(type="tool_thinking", data=payload.model_dump(exclude_none=True))


def create_confirm_tool(tool_id: str, tool: str, message: str) -> ServerMessage:
    payload = ConfirmToolPayload(tool_id=tool_id, tool=tool, message=message)
    return ServerMessage(type="confirm_tool", data=payload.model_dump(by_alias=True))


def create_assistant_chunk(text: str) -> ServerMessage:
    return ServerMessage(type="assistant_chunk", data=ChunkPayload(text=text).model_dump())


def create_assistant_complete(message: str) -> ServerMessage:
    return ServerMessage(type="assistant_complete", data=CompletePayload(message=message).model_dump())


def create_tool_executed(tool: str) -> ServerMessage:
    return ServerMessage(type="tool_executed", data=ToolPayload(tool=tool).model_dump())


def create_chat_cleared() -> ServerMessage:
    return ServerMessage(type="chat_cleared")


def create_error_response(message: str) -> ServerMessage:
    return ServerMessage(type="error", data=ErrorPayload(message=message).model_dump())

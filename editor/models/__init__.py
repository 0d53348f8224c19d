"""Chat editor models."""
from editor.models.conversation import (
    ChatMessage,
    ConversationState,
    EngineState,
    InvocationStatus,
    ToolExchange,
    ToolInvocation,
)
from editor.models.messages import ClientMessage, ServerMessage

"""
Syllabind Chat Agent

Claude-backed chat agent: builds the Messages API conversation from chat
history plus the current turn's tool exchanges and streams the response.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
import json
import logging

from shared.models.domain import SyllabusSnapshot
from shared.services.anthropic_adapter import AnthropicAdapter, DEFAULT_MAX_TOKENS, ModelEvent
from shared.utils.exceptions import LLMProviderException
from shared.utils.rate_limiter import SlidingWindowRateLimiter
from editor.agents.base_agent import BaseChatAgent
from editor.exceptions import ModelUnavailableError
from editor.models.conversation import ChatMessage, ToolExchange
from editor.prompts.templates import build_system_prompt

logger = logging.getLogger("editor.agents")


def _as_blocks(content: Any) -> List[Dict[str, Any]]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content else []
    return list(content)


def _merge_consecutive_roles(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Collapse same-role neighbours and drop a leading assistant message.

    The Messages API requires strictly alternating roles starting with user;
    chat history can break that when an earlier turn ended without a reply.
    """
    merged: List[Dict[str, Any]] = []
    for message in messages:
        if merged and merged[-1]["role"] == message["role"]:
            previous = merged[-1]
            if isinstance(previous["content"], str) and isinstance(message["content"], str):
                previous["content"] = f"{previous['content']}\n\n{message['content']}"
            else:
                previous["content"] = _as_blocks(previous["content"]) + _as_blocks(message["content"])
        else:
            merged.append(dict(message))
    while merged and merged[0]["role"] != "user":
        merged.pop(0)
    return merged


def build_model_messages(history: List[ChatMessage], exchanges: List[ToolExchange]) -> List[Dict[str, Any]]:
    """Translate chat history and resolved tool exchanges into Messages API turns."""
    messages: List[Dict[str, Any]] = [
        {"role": m.role, "content": m.content} for m in history if m.content
    ]
    for exchange in exchanges:
        invocation = exchange.invocation
        assistant_blocks: List[Dict[str, Any]] = []
        if exchange.preceding_text:
            assistant_blocks.append({"type": "text", "text": exchange.preceding_text})
        assistant_blocks.append({
            "type": "tool_use",
            "id": invocation.tool_id,
            "name": invocation.tool_name,
            "input": invocation.params,
        })
        result_block: Dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": invocation.tool_id,
            "content": exchange.result_content,
        }
        if exchange.is_error:
            result_block["is_error"] = True
        messages.append({"role": "assistant", "content": assistant_blocks})
        messages.append({"role": "user", "content": [result_block]})
    return _merge_consecutive_roles(messages)


class SyllabindChatAgent(BaseChatAgent):
    """Chat agent for editing one Syllabind, backed by Claude."""

    def __init__(
        self,
        adapter: AnthropicAdapter,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.adapter = adapter
        self.rate_limiter = rate_limiter
        self.max_tokens = max_tokens

    @property
    def agent_name(self) -> str:
        return "syllabind_chat"

    def build_system_prompt(self, syllabus: Optional[SyllabusSnapshot], tool_names: List[str]) -> str:
        if syllabus is None:
            return build_system_prompt("Untitled", None, 0, 0, tool_names)
        return build_system_prompt(
            title=syllabus.title,
            audience_level=syllabus.audience_level,
            duration_weeks=syllabus.duration_weeks,
            week_count=len(syllabus.weeks),
            tool_names=tool_names,
        )

    async def _stream(
        self,
        history: List[ChatMessage],
        exchanges: List[ToolExchange],
        tool_schemas: List[Dict[str, Any]],
        syllabus: Optional[SyllabusSnapshot],
    ) -> AsyncIterator[ModelEvent]:
        system = self.build_system_prompt(syllabus, [tool["name"] for tool in tool_schemas])
        messages = build_model_messages(history, exchanges)

        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        logger.debug(json.dumps({
            "agent": self.agent_name,
            "event": "request",
            "messages": len(messages),
            "syllabus_id": syllabus.id if syllabus else None,
        }))

        try:
            async for event in self.adapter.stream(
                system=system,
                messages=messages,
                tools=tool_schemas,
                max_tokens=self.max_tokens,
            ):
                yield event
        except LLMProviderException as e:
            raise ModelUnavailableError(str(e), self.adapter.model) from e

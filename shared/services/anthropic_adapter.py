"""
Anthropic (Claude) Adapter

Encapsulates all Claude API interaction for the chat agent.

Handles:
- Streaming Messages API calls with tool definitions
- Translating raw stream events into text fragments and tool-call requests
- Mapping SDK failures onto LLMProviderException
"""

import json
import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import anthropic

from shared.models.domain import TextFragment, ToolCallRequest
from shared.utils.exceptions import LLMProviderException

logger = logging.getLogger(__name__)

DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5"
DEFAULT_MAX_TOKENS = 2000

ModelEvent = Union[TextFragment, ToolCallRequest]


class AnthropicAdapter:
    """Adapter around Anthropic's async Messages streaming API."""

    def __init__(self, api_key: str, timeout: int = 60, model: str = DEFAULT_CLAUDE_MODEL):
        self.model = model
        self.async_client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    def _build_kwargs(
        self,
        system: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> Dict[str, Any]:
        """Build kwargs for anthropic messages.stream()."""
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            # The system prompt is stable across a turn's tool loop, so cache it
            kwargs["system"] = [{"type": "text", "text": system, "cache_control": {"type": "ephemeral"}}]
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = {"type": "auto", "disable_parallel_tool_use": True}
        return kwargs

    async def stream(
        self,
        system: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[ModelEvent]:
        """
        Stream one model response.

        Yields TextFragment for every text delta in arrival order, and a
        ToolCallRequest once each tool_use block is complete.

        Raises:
            LLMProviderException: If the API call fails at any point
        """
        kwargs = self._build_kwargs(system, messages, tools, max_tokens)
        start_time = time.time()
        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "starting",
            "model": self.model,
            "params": {"messages": len(messages), "tools": len(tools or [])},
        }))

        tool_id: Optional[str] = None
        tool_name: Optional[str] = None
        tool_json = ""
        try:
            async with self.async_client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "content_block_start" and event.content_block.type == "tool_use":
                        tool_id = event.content_block.id
                        tool_name = event.content_block.name
                        tool_json = ""
                    elif event.type == "content_block_delta":
                        if event.delta.type == "text_delta":
                            yield TextFragment(text=event.delta.text)
                        elif event.delta.type == "input_json_delta":
                            tool_json += event.delta.partial_json
                    elif event.type == "content_block_stop" and tool_id is not None:
                        yield ToolCallRequest(id=tool_id, name=tool_name, input=self._parse_tool_input(tool_json))
                        tool_id, tool_name, tool_json = None, None, ""
        except anthropic.APIError as e:
            logger.error(json.dumps({
                "step": "LLM_CALL",
                "status": "failed",
                "model": self.model,
                "error": str(e),
                "duration_ms": int((time.time() - start_time) * 1000),
            }))
            raise LLMProviderException(e) from e

        logger.info(json.dumps({
            "step": "LLM_CALL",
            "status": "complete",
            "model": self.model,
            "duration_ms": int((time.time() - start_time) * 1000),
        }))

    @staticmethod
    def _parse_tool_input(raw: str) -> Dict[str, Any]:
        """Parse accumulated tool input JSON; an empty or broken payload becomes {}."""
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed tool input: {raw[:200]}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

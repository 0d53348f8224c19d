"""Unit tests for shared/services/anthropic_adapter.py — AnthropicAdapter."""

from types import SimpleNamespace

import anthropic
import httpx
import pytest
from unittest.mock import MagicMock, patch

from shared.models.domain import TextFragment, ToolCallRequest
from shared.services.anthropic_adapter import AnthropicAdapter, DEFAULT_CLAUDE_MODEL, DEFAULT_MAX_TOKENS
from shared.utils.exceptions import LLMProviderException


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

class FakeStream:
    """Async context manager / iterator mimicking messages.stream()."""

    def __init__(self, events, error=None):
        self.events = events
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error


def text_delta(value):
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=value))


def tool_start(tool_id, name):
    return SimpleNamespace(
        type="content_block_start",
        content_block=SimpleNamespace(type="tool_use", id=tool_id, name=name),
    )


def text_start():
    return SimpleNamespace(type="content_block_start", content_block=SimpleNamespace(type="text"))


def json_delta(partial):
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="input_json_delta", partial_json=partial))


def block_stop():
    return SimpleNamespace(type="content_block_stop")


@pytest.fixture
def adapter():
    ad = AnthropicAdapter(api_key="test-key-fake")
    ad.async_client = MagicMock()
    return ad


async def collect(adapter, **kwargs):
    return [event async for event in adapter.stream(system="sys", messages=[{"role": "user", "content": "hi"}], **kwargs)]


# ---------------------------------------------------------------------------
# Tests — construction
# ---------------------------------------------------------------------------

class TestConstruction:
    def test_defaults(self):
        assert DEFAULT_CLAUDE_MODEL == "claude-sonnet-4-5"
        assert DEFAULT_MAX_TOKENS == 2000

    def test_client_created_with_timeout(self):
        with patch("shared.services.anthropic_adapter.anthropic") as mock_anthropic:
            AnthropicAdapter(api_key="k", timeout=12, model="claude-x")
        mock_anthropic.AsyncAnthropic.assert_called_once_with(api_key="k", timeout=12)


# ---------------------------------------------------------------------------
# Tests — _build_kwargs
# ---------------------------------------------------------------------------

class TestBuildKwargs:
    def test_system_prompt_is_cached_block(self, adapter):
        kwargs = adapter._build_kwargs("You help.", [{"role": "user", "content": "hi"}])

        assert kwargs["model"] == DEFAULT_CLAUDE_MODEL
        assert kwargs["max_tokens"] == DEFAULT_MAX_TOKENS
        assert kwargs["system"] == [
            {"type": "text", "text": "You help.", "cache_control": {"type": "ephemeral"}}
        ]
        assert "tools" not in kwargs

    def test_tools_disable_parallel_use(self, adapter):
        tools = [{"name": "add_step", "description": "d", "input_schema": {"type": "object"}}]
        kwargs = adapter._build_kwargs("", [], tools=tools, max_tokens=500)

        assert "system" not in kwargs
        assert kwargs["tools"] == tools
        assert kwargs["tool_choice"] == {"type": "auto", "disable_parallel_tool_use": True}
        assert kwargs["max_tokens"] == 500


# ---------------------------------------------------------------------------
# Tests — stream
# ---------------------------------------------------------------------------

class TestStream:
    @pytest.mark.asyncio
    async def test_text_fragments_in_order(self, adapter):
        adapter.async_client.messages.stream.return_value = FakeStream([
            text_start(), text_delta("Hel"), text_delta("lo"), block_stop(),
        ])

        events = await collect(adapter)

        assert events == [TextFragment(text="Hel"), TextFragment(text="lo")]

    @pytest.mark.asyncio
    async def test_tool_call_assembled_from_json_deltas(self, adapter):
        adapter.async_client.messages.stream.return_value = FakeStream([
            text_start(), text_delta("Removing it."), block_stop(),
            tool_start("toolu_1", "remove_step"),
            json_delta('{"week_index": 1, '),
            json_delta('"step_position": 2}'),
            block_stop(),
        ])

        events = await collect(adapter, tools=[{"name": "remove_step"}])

        assert events == [
            TextFragment(text="Removing it."),
            ToolCallRequest(id="toolu_1", name="remove_step", input={"week_index": 1, "step_position": 2}),
        ]

    @pytest.mark.asyncio
    async def test_tool_call_without_input(self, adapter):
        adapter.async_client.messages.stream.return_value = FakeStream([
            tool_start("toolu_1", "read_current_syllabind"), block_stop(),
        ])

        events = await collect(adapter)

        assert events == [ToolCallRequest(id="toolu_1", name="read_current_syllabind", input={})]

    @pytest.mark.asyncio
    async def test_api_error_maps_to_provider_exception(self, adapter):
        error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
        adapter.async_client.messages.stream.return_value = FakeStream([text_delta("Par")], error=error)

        with pytest.raises(LLMProviderException):
            await collect(adapter)

    def test_parse_tool_input(self):
        assert AnthropicAdapter._parse_tool_input("") == {}
        assert AnthropicAdapter._parse_tool_input("{broken") == {}
        assert AnthropicAdapter._parse_tool_input("[1, 2]") == {}
        assert AnthropicAdapter._parse_tool_input('{"a": 1}') == {"a": 1}

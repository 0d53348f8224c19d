"""
Session Protocol Engine

Drives one chat session: takes inbound client frames, runs the model/tool
loop for each user turn and emits outbound frames in transition order.

State flow per user turn:
    IDLE -> AWAITING_MODEL -> [STREAMING_ASSISTANT] ->
        (tool requested)  -> [AWAITING_TOOL_CONFIRMATION] -> EXECUTING_TOOL -> AWAITING_MODEL ...
        (no tool)         -> IDLE
"""

import asyncio
import json
import logging
import time
from typing import Awaitable, Callable, Optional

from shared.models.domain import SyllabusSnapshot, TextFragment, ToolCallRequest
from editor.agents.base_agent import BaseChatAgent
from editor.exceptions import (
    ModelUnavailableError,
    NotFoundError,
    OutstandingToolError,
    StateTransitionError,
    ToolError,
    ToolExecutionError,
    TransportClosedError,
)
from editor.models.conversation import (
    ChatMessage,
    ConversationState,
    EngineState,
    InvocationStatus,
    ToolExchange,
    ToolInvocation,
)
from editor.models.messages import (
    ClientMessage,
    ServerMessage,
    create_assistant_chunk,
    create_assistant_complete,
    create_chat_cleared,
    create_confirm_tool,
    create_error_response,
    create_history_message,
    create_tool_executed,
    create_tool_thinking,
)
from editor.services.conversation_store import ConversationStore
from editor.tools.registry import ToolContext, ToolRegistry

logger = logging.getLogger("editor.engine")

Emitter = Callable[[ServerMessage], Awaitable[None]]
CloseHook = Callable[[], Awaitable[None]]

DEFAULT_MAX_TOOL_ITERATIONS = 5

_TRANSITIONS: dict[EngineState, set[EngineState]] = {
    EngineState.IDLE: {EngineState.AWAITING_MODEL, EngineState.CLOSED},
    EngineState.AWAITING_MODEL: {
        EngineState.STREAMING_ASSISTANT,
        EngineState.AWAITING_TOOL_CONFIRMATION,
        EngineState.EXECUTING_TOOL,
        EngineState.IDLE,
        EngineState.CLOSED,
    },
    EngineState.STREAMING_ASSISTANT: {
        EngineState.AWAITING_TOOL_CONFIRMATION,
        EngineState.EXECUTING_TOOL,
        EngineState.AWAITING_MODEL,
        EngineState.IDLE,
        EngineState.CLOSED,
    },
    EngineState.AWAITING_TOOL_CONFIRMATION: {
        EngineState.EXECUTING_TOOL,
        EngineState.AWAITING_MODEL,
        EngineState.IDLE,
        EngineState.CLOSED,
    },
    EngineState.EXECUTING_TOOL: {
        EngineState.AWAITING_MODEL,
        EngineState.IDLE,
        EngineState.CLOSED,
    },
    EngineState.CLOSED: set(),
}


def declined_tool_result(tool_name: str) -> str:
    return f"User declined {tool_name}, so the tool was skipped. Please continue without it."


class ChatSessionEngine:
    """
    Protocol engine for one open chat channel.

    The engine owns its ConversationState while the channel is live. Frames
    are handled one at a time; a user turn runs as a single task so that a
    tool confirmation can arrive while the turn is suspended on it.
    """

    def __init__(
        self,
        conversation: ConversationState,
        conversations: ConversationStore,
        registry: ToolRegistry,
        tool_context: ToolContext,
        agent: BaseChatAgent,
        emit: Emitter,
        max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS,
        confirmation_timeout: Optional[float] = None,
        on_close: Optional[CloseHook] = None,
    ):
        if max_tool_iterations < 1:
            raise ValueError("max_tool_iterations must be at least 1")
        self.conversation = conversation
        self.conversations = conversations
        self.registry = registry
        self.tool_context = tool_context
        self.agent = agent
        self.max_tool_iterations = max_tool_iterations
        self.confirmation_timeout = confirmation_timeout
        self._emit_frame = emit
        self._on_close = on_close

        self.state = EngineState.IDLE
        self._turn_task: Optional[asyncio.Task] = None
        self._confirmation: Optional[asyncio.Future] = None

    # State

    @property
    def syllabus_id(self) -> int:
        return self.conversation.syllabus_id

    @property
    def is_closed(self) -> bool:
        return self.state == EngineState.CLOSED

    def _transition(self, to: EngineState) -> None:
        if to == self.state:
            return
        if to not in _TRANSITIONS[self.state]:
            raise StateTransitionError(self.state.value, to.value)
        logger.debug(f"Session {self.syllabus_id}/{self.conversation.username}: {self.state.value} -> {to.value}")
        self.state = to

    async def _emit(self, message: ServerMessage) -> None:
        """Send a frame unless the session is closed."""
        if self.is_closed:
            return
        await self._emit_frame(message)

    # Lifecycle

    async def start(self) -> None:
        """Take ownership of the conversation, closing any engine that held it."""
        displaced = self.conversations.claim(self.conversation, self)
        if displaced is not None:
            await displaced.close()

    async def close(self) -> None:
        """
        Close the session: cancel the in-flight turn and drop unfinished state.

        The retained conversation keeps its finished history and resumes at
        IDLE on the next connection.
        """
        if self.is_closed:
            return
        self._transition(EngineState.CLOSED)

        if self._confirmation is not None and not self._confirmation.done():
            self._confirmation.cancel()
        task = self._turn_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self.conversation.outstanding_tool = None
        self.conversation.is_streaming = False
        self.conversations.release(self.conversation, self)
        logger.info(json.dumps({
            "step": "SESSION",
            "status": "closed",
            "syllabus_id": self.syllabus_id,
            "username": self.conversation.username,
        }))
        if self._on_close is not None:
            await self._on_close()

    async def wait_for_turn(self) -> None:
        """Wait until the in-flight turn (if any) has finished."""
        task = self._turn_task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    # Inbound frames

    async def handle_frame(self, message: ClientMessage) -> None:
        """Dispatch one inbound client frame."""
        if self.is_closed:
            return
        try:
            if message.type == "init":
                await self._emit(create_history_message(self.conversation.history))
            elif message.type == "user_message":
                self._begin_turn(message.content)
            elif message.type == "tool_confirmed":
                await self._handle_confirmation(message.tool_id, bool(message.approved))
            elif message.type == "clear_chat":
                await self._handle_clear()
        except TransportClosedError:
            await self.close()

    def _begin_turn(self, content: str) -> None:
        if self.state != EngineState.IDLE:
            logger.warning(f"Ignoring user_message while {self.state.value} (syllabus {self.syllabus_id})")
            return
        self._transition(EngineState.AWAITING_MODEL)
        self.conversation.outstanding_tool = None
        user_message = ChatMessage(role="user", content=content)
        self._turn_task = asyncio.create_task(self._run_turn(user_message))

    async def _handle_confirmation(self, tool_id: Optional[str], approved: bool) -> None:
        future = self._confirmation
        outstanding = self.conversation.outstanding_tool
        if (
            self.state != EngineState.AWAITING_TOOL_CONFIRMATION
            or future is None
            or future.done()
            or outstanding is None
        ):
            logger.warning(f"tool_confirmed for {tool_id} while {self.state.value}")
            await self._emit(create_error_response("No tool is awaiting confirmation"))
            return
        if outstanding.tool_id != tool_id:
            logger.warning(f"tool_confirmed for {tool_id}, but {outstanding.tool_id} is outstanding")
            await self._emit(create_error_response(f"Unknown tool confirmation: {tool_id}"))
            return
        future.set_result(approved)

    async def _handle_clear(self) -> None:
        if self.state != EngineState.IDLE:
            await self._emit(create_error_response("Cannot clear the chat while the assistant is responding"))
            return
        deleted = await self.conversations.clear(self.conversation)
        logger.info(f"Cleared chat for syllabus {self.syllabus_id} ({deleted} persisted messages)")
        await self._emit(create_chat_cleared())

    # User turn

    async def _run_turn(self, user_message: ChatMessage) -> None:
        start_time = time.time()
        text_parts: list[str] = []
        exchanges: list[ToolExchange] = []
        model_calls = 0

        logger.info(json.dumps({
            "step": "TURN",
            "status": "starting",
            "syllabus_id": self.syllabus_id,
            "username": self.conversation.username,
        }))

        try:
            syllabus = await self.tool_context.store.read_syllabus(self.syllabus_id)
            # Only a turn on an existing syllabus enters the history
            await self.conversations.append(self.conversation, user_message)

            for _ in range(self.max_tool_iterations):
                self._transition(EngineState.AWAITING_MODEL)
                model_calls += 1
                iteration_text, invocation = await self._call_model(syllabus, exchanges, text_parts)
                if invocation is None:
                    break
                exchanges.append(await self._resolve_tool(invocation, iteration_text))
                if exchanges[-1].invocation.status == InvocationStatus.EXECUTED:
                    syllabus = await self.tool_context.store.read_syllabus(self.syllabus_id)
            else:
                logger.warning(json.dumps({
                    "step": "TURN",
                    "status": "tool_limit_reached",
                    "syllabus_id": self.syllabus_id,
                    "model_calls": model_calls,
                }))

            final_text = "".join(text_parts)
            if final_text:
                await self.conversations.append(
                    self.conversation, ChatMessage(role="assistant", content=final_text)
                )
            await self._emit(create_assistant_complete(final_text))
            logger.info(json.dumps({
                "step": "TURN",
                "status": "complete",
                "syllabus_id": self.syllabus_id,
                "model_calls": model_calls,
                "tool_calls": len(exchanges),
                "duration_ms": int((time.time() - start_time) * 1000),
            }))

        except ModelUnavailableError as e:
            logger.error(json.dumps({"step": "TURN", "status": "model_unavailable", "error": e.message}))
            await self._emit(create_error_response(f"The assistant is unavailable: {e.message}"))

        except OutstandingToolError as e:
            logger.error(json.dumps({"step": "TURN", "status": "protocol_violation", "error": e.message}))
            await self._emit(create_error_response(e.message))

        except NotFoundError as e:
            logger.warning(json.dumps({"step": "TURN", "status": "not_found", "error": e.message}))
            await self._emit(create_error_response("Syllabus not found"))

        except TransportClosedError:
            await self.close()

        except Exception as e:
            logger.exception(f"Chat turn failed for syllabus {self.syllabus_id}: {e}")
            await self._emit(create_error_response(str(e) or "Unknown error"))

        finally:
            self.conversation.is_streaming = False
            if not self.is_closed:
                self.conversation.outstanding_tool = None
                self._transition(EngineState.IDLE)

    async def _call_model(
        self,
        syllabus: SyllabusSnapshot,
        exchanges: list[ToolExchange],
        text_parts: list[str],
    ) -> tuple[str, Optional[ToolInvocation]]:
        """Stream one model response; return its text and the tool it requested, if any."""
        iteration_text: list[str] = []
        invocation: Optional[ToolInvocation] = None

        stream = self.agent.converse(
            self.conversation.history, exchanges, self.registry.schemas(), syllabus
        )
        try:
            async for event in stream:
                if isinstance(event, TextFragment):
                    if not event.text:
                        continue
                    if self.state == EngineState.AWAITING_MODEL:
                        self._transition(EngineState.STREAMING_ASSISTANT)
                    self.conversation.is_streaming = True
                    iteration_text.append(event.text)
                    text_parts.append(event.text)
                    await self._emit(create_assistant_chunk(event.text))
                elif isinstance(event, ToolCallRequest):
                    proposed = ToolInvocation(tool_id=event.id, tool_name=event.name, params=event.input)
                    self.conversation.propose_tool(proposed)
                    invocation = proposed
        finally:
            await stream.aclose()
            self.conversation.is_streaming = False

        return "".join(iteration_text), invocation

    async def _resolve_tool(self, invocation: ToolInvocation, preceding_text: str) -> ToolExchange:
        """Confirm (if required) and execute a proposed tool, producing the result for the model."""
        try:
            spec = self.registry.get(invocation.tool_name)
        except ToolError as e:
            invocation.mark_failed(e.to_tool_result())
            self.conversation.resolve_tool()
            return ToolExchange(
                invocation=invocation,
                preceding_text=preceding_text,
                result_content=json.dumps(invocation.error),
                is_error=True,
            )

        if spec.requires_confirmation:
            self._transition(EngineState.AWAITING_TOOL_CONFIRMATION)
            self._confirmation = asyncio.get_running_loop().create_future()
            await self._emit(create_confirm_tool(invocation.tool_id, spec.name, spec.confirmation_message))
            approved = await self._await_confirmation()
            if not approved:
                invocation.reject()
                self.conversation.resolve_tool()
                self._transition(EngineState.AWAITING_MODEL)
                logger.info(json.dumps({
                    "step": "TOOL_EXECUTE",
                    "status": "declined",
                    "tool": spec.name,
                    "tool_id": invocation.tool_id,
                }))
                return ToolExchange(
                    invocation=invocation,
                    preceding_text=preceding_text,
                    result_content=declined_tool_result(spec.name),
                )
            invocation.confirm()

        self._transition(EngineState.EXECUTING_TOOL)
        await self._emit(create_tool_thinking(spec.name, spec.label))
        start_time = time.time()
        try:
            result = await self.registry.execute(invocation, self.tool_context)
        except ToolError as e:
            return self._failed_exchange(invocation, preceding_text, e, start_time)
        except Exception as e:
            logger.exception(f"Tool {spec.name} raised unexpectedly")
            return self._failed_exchange(
                invocation, preceding_text, ToolExecutionError(spec.name, str(e)), start_time
            )

        invocation.mark_executed(result)
        self.conversation.resolve_tool()
        logger.info(json.dumps({
            "step": "TOOL_EXECUTE",
            "status": "complete",
            "tool": spec.name,
            "tool_id": invocation.tool_id,
            "duration_ms": int((time.time() - start_time) * 1000),
        }))
        await self._emit(create_tool_executed(spec.name))
        return ToolExchange(
            invocation=invocation,
            preceding_text=preceding_text,
            result_content=json.dumps(result, default=str),
        )

    def _failed_exchange(
        self,
        invocation: ToolInvocation,
        preceding_text: str,
        error: ToolError,
        start_time: float,
    ) -> ToolExchange:
        invocation.mark_failed(error.to_tool_result())
        self.conversation.resolve_tool()
        logger.warning(json.dumps({
            "step": "TOOL_EXECUTE",
            "status": "failed",
            "tool": invocation.tool_name,
            "tool_id": invocation.tool_id,
            "error": error.kind,
            "message": error.message,
            "duration_ms": int((time.time() - start_time) * 1000),
        }))
        return ToolExchange(
            invocation=invocation,
            preceding_text=preceding_text,
            result_content=json.dumps(invocation.error),
            is_error=True,
        )

    async def _await_confirmation(self) -> bool:
        future = self._confirmation
        try:
            if self.confirmation_timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout=self.confirmation_timeout)
        except asyncio.TimeoutError:
            logger.info(f"Tool confirmation timed out after {self.confirmation_timeout}s; treating as declined")
            return False
        finally:
            self._confirmation = None

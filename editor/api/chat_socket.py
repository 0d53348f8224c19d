"""
Chat editor WebSocket endpoint.

WebSocket /ws/chat-syllabind/{syllabus_id}: parses inbound frames for the
session engine and writes its outbound frames, in order, through a single
writer task.
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from editor.api.dependencies import ChatServices, get_chat_services, get_current_username
from editor.exceptions import TransportClosedError
from editor.models.messages import ClientMessage, ServerMessage, create_error_response

logger = logging.getLogger("editor.api")

router = APIRouter(tags=["chat"])

TAKEOVER_CLOSE_CODE = 4000


class ChannelOutbox:
    """FIFO of outbound frames drained by one writer task."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.closed = False
        self.taken_over = False
        self._queue: asyncio.Queue[Optional[ServerMessage]] = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain())

    async def put(self, message: ServerMessage) -> None:
        if self.closed:
            raise TransportClosedError("channel closed")
        self._queue.put_nowait(message)

    async def _drain(self) -> None:
        while True:
            message = await self._queue.get()
            if message is None:
                break
            try:
                await self.websocket.send_json(message.to_wire())
            except Exception as e:
                logger.info(f"Chat channel send failed, closing: {e}")
                self.closed = True
                return
        if self.taken_over:
            try:
                await self.websocket.close(code=TAKEOVER_CLOSE_CODE, reason="Chat opened in another window")
            except RuntimeError as e:
                logger.debug(f"Chat channel already closed: {e}")

    async def finish(self, taken_over: bool = False) -> None:
        """Flush queued frames and stop the writer."""
        self.taken_over = self.taken_over or taken_over
        self._queue.put_nowait(None)
        if self._writer is not None and self._writer is not asyncio.current_task():
            await asyncio.gather(self._writer, return_exceptions=True)
        self.closed = True


def parse_client_frame(raw: str) -> ClientMessage:
    """
    Parse one inbound text frame.

    Raises:
        ValueError: If the frame is not JSON or not a valid client message
    """
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e.msg}") from e
    try:
        return ClientMessage.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"Invalid message: {e.errors()[0]['msg']}") from e


@router.websocket("/ws/chat-syllabind/{syllabus_id}")
async def chat_syllabind_websocket(
    websocket: WebSocket,
    syllabus_id: int,
    username: str = Depends(get_current_username),
    services: ChatServices = Depends(get_chat_services),
):
    """
    Conversational Syllabind editing session.

    One live channel per (user, syllabus): a newer connection takes the
    conversation over and the older one is closed.
    """
    await websocket.accept()
    outbox = ChannelOutbox(websocket)
    outbox.start()

    conversation = await services.conversations.load(username, syllabus_id)

    async def on_engine_close():
        await outbox.finish(taken_over=services.conversations.owner_of(username, syllabus_id) is not None)

    engine = services.create_engine(conversation, outbox.put, on_close=on_engine_close)
    await engine.start()
    logger.info(f"Chat session opened for syllabus {syllabus_id} ({username})")

    try:
        while not engine.is_closed:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
            raw = frame.get("text")
            if raw is None:
                logger.warning(f"Rejected binary chat frame for syllabus {syllabus_id}")
                await outbox.put(create_error_response("Binary frames are not supported"))
                continue
            try:
                message = parse_client_frame(raw)
            except ValueError as e:
                logger.warning(f"Rejected chat frame for syllabus {syllabus_id}: {e}")
                await outbox.put(create_error_response(str(e)))
                continue
            await engine.handle_frame(message)
    except WebSocketDisconnect:
        logger.info(f"Chat session disconnected for syllabus {syllabus_id} ({username})")
    except (TransportClosedError, RuntimeError) as e:
        logger.info(f"Chat channel closed for syllabus {syllabus_id} ({username}): {e}")
    finally:
        await engine.close()
        await outbox.finish()

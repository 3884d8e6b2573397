"""WebSocket handling for the bridge exec channel.

Each WebSocket connection plays the part of the front-end window: it sends
exec requests and receives result envelopes pushed under their callback id.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from shellbridge.core.bridge import Bridge, PluginResult
from shellbridge.server.models import ExecRequest, ResultMessage

logger = logging.getLogger(__name__)


class WebSocketChannel:
    """PushChannel writing to one WebSocket.

    ``send`` only enqueues; a single writer task drains the queue so that
    messages leave in the order they were produced.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._queue: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, channel: str, message: Dict[str, Any]) -> None:
        if self._closed:
            logger.debug("Dropping result for %s: connection closed", channel)
            return
        self._queue.put_nowait(ResultMessage(channel=channel, result=message).model_dump())

    async def run(self) -> None:
        """Writer loop; returns once closed."""
        while True:
            item = await self._queue.get()
            if item is None:
                break
            try:
                await self._websocket.send_json(item)
            except Exception as e:
                logger.warning("Failed to push result to client, closing channel: %s", e)
                self._closed = True
                break

    def close(self) -> None:
        if not self._closed:
            self._closed = True
        self._queue.put_nowait(None)


def parse_exec_request(raw: str, channel: WebSocketChannel) -> Optional[ExecRequest]:
    """Parse an inbound frame.

    Invalid frames that still carry a callback id are answered with an error
    envelope; the others are logged and dropped.
    """
    try:
        return ExecRequest.model_validate_json(raw)
    except ValidationError as e:
        callback_id = None
        try:
            data = json.loads(raw)
            if isinstance(data, dict):
                callback_id = data.get("callbackId")
        except ValueError:
            pass
        logger.warning("Invalid exec request: %s", e.errors(include_url=False))
        if isinstance(callback_id, str) and callback_id:
            channel.send(
                callback_id,
                PluginResult.error({"error": "InvalidRequest", "message": "Malformed exec request"}).to_dict(),
            )
        return None


async def receive_frame(websocket: WebSocket) -> Optional[str]:
    """Wait for the next frame and return its text.

    Binary frames are decoded as UTF-8; undecodable ones are logged and
    yield None.

    Raises:
        WebSocketDisconnect: The client went away.
    """
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes")
    if data is None:
        logger.warning("Dropping empty frame")
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.warning("Dropping binary frame that is not UTF-8: %s", e)
        return None


async def bridge_endpoint(websocket: WebSocket) -> None:
    """Serve exec requests over one WebSocket connection."""
    bridge: Bridge = websocket.app.state.bridge
    await websocket.accept()
    logger.info("Front-end connected")

    channel = WebSocketChannel(websocket)
    writer = asyncio.create_task(channel.run())
    calls: Set[asyncio.Task] = set()

    try:
        while True:
            raw = await receive_frame(websocket)
            if raw is None:
                continue
            request = parse_exec_request(raw, channel)
            if request is None:
                continue
            task = asyncio.create_task(bridge.exec(
                request.service,
                request.action,
                request.args,
                request.callback_id,
                channel,
            ))
            calls.add(task)
            task.add_done_callback(calls.discard)
    except WebSocketDisconnect:
        logger.info("Front-end disconnected (%d calls still running)", len(calls))
    finally:
        channel.close()
        await writer

"""Demo server routes.

- POST /api/user/ acknowledges immediately and pushes the outcome later
- /ws and /event stream the broadcast channel to push clients
- /health for liveness checks
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..protocol.events import EventKind
from .channel import BroadcastChannel

logger = logging.getLogger(__name__)

# Username that simulates the error path
EXISTING_USERNAME = "existinguser"

# Request parameters the correlation id may arrive under
CORRELATION_PARAMS = ("correlationId", "clientMsgId")


class UserEvent(str, Enum):
    """Events pushed in answer to POST /api/user/."""

    USER_CREATED = "UserCreated"
    USER_EXISTS = "UserExists"


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _push_later(channel: BroadcastChannel, delay: float, message: dict[str, Any]) -> None:
    """Push a message after `delay` seconds, stamped at delivery time."""

    def push() -> None:
        count = channel.push({**message, "timestamp": _timestamp()})
        logger.debug(f"Pushed {message.get('event')} to {count} subscribers")

    asyncio.get_running_loop().call_later(delay, push)


async def _read_params(request: Request) -> dict[str, Any]:
    """Merge query parameters with a JSON object body."""
    params: dict[str, Any] = dict(request.query_params)
    body = await request.body()
    if body:
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            params.update(data)
    return params


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "ok"})


async def create_user(request: Request) -> JSONResponse:
    """Queue a user creation and push the outcome after the configured delay.

    The correlation id sent by the client is echoed back as `clientMsgId`
    both in the acknowledgement and in the pushed event.
    """
    params = await _read_params(request)
    logger.info(f"POST /api/user/ {params}")

    username = params.get("username")
    if not username:
        return JSONResponse({"error": "Missing 'username'"}, status_code=400)

    client_msg_id = next(
        (params[key] for key in CORRELATION_PARAMS if params.get(key) is not None), None
    )
    event = UserEvent.USER_EXISTS if username == EXISTING_USERNAME else UserEvent.USER_CREATED

    _push_later(
        request.app.state.channel,
        request.app.state.delay,
        {"event": event.value, "clientMsgId": client_msg_id},
    )

    return JSONResponse({"requestQueued": True, "url": "/api/user", "clientMsgId": client_msg_id})


async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket push endpoint.

    URL: /ws

    Protocol:
    1. Client connects
    2. Server broadcasts {"sid", "event": "connected"} on the channel
    3. Every channel message is sent to the client as one JSON text frame
    4. Anything the client sends is ignored; the loop ends on disconnect
    """
    channel: BroadcastChannel = websocket.app.state.channel

    await websocket.accept()
    sid, queue = channel.subscribe()
    channel.push({"sid": sid, "event": EventKind.CONNECTED.value, "timestamp": _timestamp()})

    async def forward() -> None:
        while True:
            message = await queue.get()
            await websocket.send_text(json.dumps(message))

    async def drain() -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    tasks = [asyncio.create_task(forward()), asyncio.create_task(drain())]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                await task
        channel.unsubscribe(sid)
        logger.info(f"WebSocket subscriber {sid} disconnected")


async def sse_endpoint(request: Request) -> StreamingResponse:
    """SSE push endpoint - streams every channel message."""
    channel: BroadcastChannel = request.app.state.channel

    async def event_stream():
        sid, queue = channel.subscribe()
        channel.push({"sid": sid, "event": EventKind.CONNECTED.value, "timestamp": _timestamp()})
        try:
            # Starlette cancels this generator when the client goes away
            while True:
                message = await queue.get()
                yield f"data: {json.dumps(message)}\n\n"
        finally:
            channel.unsubscribe(sid)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]

user_routes = [
    Route("/api/user/", create_user, methods=["POST"]),
]

push_routes = [
    WebSocketRoute("/ws", websocket_endpoint),
    Route("/event", sse_endpoint, methods=["GET"]),
]

"""Transport abstractions for the two channels.

- RequestTransport is the PROTOCOL for the request channel: it sends one
  OutboundRequest and returns the server's immediate acknowledgement.
- PushChannel is the base class for the push channel: it keeps a
  long-lived connection open and hands every decoded message to a sink
  (normally Correlator.dispatch) from a background reader task.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ..protocol.events import IncomingEvent
from ..protocol.requests import OutboundRequest

logger = logging.getLogger(__name__)

# Receives every event decoded from the push channel
EventSink = Callable[[IncomingEvent], Awaitable[Any]]


class ChannelState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


@runtime_checkable
class RequestTransport(Protocol):
    """Protocol for request channel transports.

    A failure to transmit is raised from send() and never touches the
    correlation machinery: the matching future keeps waiting for its
    deadline unless the caller cancels it.
    """

    async def send(self, request: OutboundRequest) -> Any:
        """Transmit a request and return the server's acknowledgement.

        Raises:
            Exception: Transport specific errors (e.g. httpx.HTTPError)
        """
        ...

    async def close(self) -> None:
        """Release any connection resources."""
        ...


class PushChannel(ABC):
    """Base class for push channels.

    Provides:
    - State management
    - Background reader task feeding decoded events to the sink
    - Wire decoding (one JSON object per message)
    """

    def __init__(self, url: str | None = None) -> None:
        self.url = url
        self._state = ChannelState.DISCONNECTED
        self._sink: EventSink | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ChannelState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the channel is connected."""
        return self._state == ChannelState.CONNECTED

    def bind(self, sink: EventSink) -> None:
        """Set the coroutine function that receives every event."""
        self._sink = sink

    async def connect(self) -> None:
        """Open the channel and start the background reader.

        Raises:
            RuntimeError: If no sink is bound
            ConnectionError: If the connection fails
        """
        if self._sink is None:
            raise RuntimeError("No event sink bound to push channel")

        async with self._lock:
            if self._state == ChannelState.CONNECTED:
                return

            if self._reader_task is not None:
                # Previous connection was lost; release it before reconnecting
                await self._do_disconnect()
                self._reader_task = None

            self._state = ChannelState.CONNECTING
            try:
                await self._do_connect()
                self._state = ChannelState.CONNECTED
                self._reader_task = asyncio.create_task(self._read_loop())
                logger.info(f"{self.__class__.__name__} connected to {self.url}")
            except Exception as e:
                self._state = ChannelState.DISCONNECTED
                raise ConnectionError(f"Failed to connect: {e}") from e

    async def disconnect(self) -> None:
        """Stop the reader and close the channel."""
        async with self._lock:
            if self._state == ChannelState.CLOSED or (
                self._state == ChannelState.DISCONNECTED and self._reader_task is None
            ):
                return

            self._state = ChannelState.CLOSED

            if self._reader_task:
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
                self._reader_task = None

            await self._do_disconnect()
            self._state = ChannelState.DISCONNECTED
            logger.info(f"{self.__class__.__name__} disconnected")

    async def _read_loop(self) -> None:
        """Background task decoding messages and handing them to the sink."""
        try:
            async for message in self._receive_messages():
                try:
                    event = IncomingEvent.from_wire(message)
                except ValueError as e:
                    logger.warning(f"Skipping push message: {e}")
                    continue

                await self._deliver(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Push channel read error: {e}")
        finally:
            if self._state == ChannelState.CONNECTED:
                # Server closed the stream; pending futures will time out
                self._state = ChannelState.DISCONNECTED
                logger.warning(f"{self.__class__.__name__} lost connection to {self.url}")

    async def _deliver(self, event: IncomingEvent) -> None:
        if self._sink is None:
            return
        try:
            await self._sink(event)
        except Exception:
            logger.exception(f"Error delivering push event {event.kind}")

    @staticmethod
    def _decode(raw: str | bytes) -> dict[str, Any] | None:
        """Decode one wire message. Returns None for anything but a JSON object."""
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid push message: {e}")
            return None
        if not isinstance(message, dict):
            logger.warning(f"Push message is not an object: {type(message).__name__}")
            return None
        return message

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    def _receive_messages(self) -> AsyncIterator[dict[str, Any]]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...

    async def __aenter__(self) -> PushChannel:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

"""Request dispatcher - issues requests whose results arrive later.

Ordering is the whole point of this module:

    1. pick a correlation id
    2. register the future with the Correlator (synchronous)
    3. transmit the request carrying the id
    4. hand the id back to the caller

Because step 2 finishes before step 3 starts, a reply that arrives on
the push channel before the HTTP call even returns still finds its
future waiting.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import DEFAULT_CORRELATION_FIELD, FutureOptions
from .correlator import Correlator, FutureResult
from .protocol.requests import OutboundRequest
from .transport.base import RequestTransport

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Glues request issuance to correlator registration.

    Args:
        correlator: Owns the pending futures
        transport: Request channel transport
        correlation_field: Request parameter carrying the correlation id;
            the server echoes it back on the push channel
    """

    def __init__(
        self,
        correlator: Correlator,
        transport: RequestTransport,
        correlation_field: str = DEFAULT_CORRELATION_FIELD,
    ) -> None:
        self.correlator = correlator
        self.transport = transport
        self.correlation_field = correlation_field

    async def send(
        self,
        request: OutboundRequest | dict[str, Any],
        future: FutureOptions | None = None,
        **future_overrides: Any,
    ) -> str:
        """Register a future, then send the request carrying its id.

        Args:
            request: The request, or a dict of OutboundRequest fields
            future: Future options (kinds, callbacks, deadline, optional id)
            **future_overrides: FutureOptions fields applied on top

        Returns:
            The correlation id

        Raises:
            ConfigurationError: Invalid future options (nothing is sent)
            Exception: Whatever the transport raises; the future stays
                pending and will time out unless cancelled
        """
        outbound = OutboundRequest.coerce(request)
        options = (future or FutureOptions()).with_overrides(**future_overrides)

        correlation_id = self.correlator.register(options)
        await self._transmit(outbound, correlation_id)
        return correlation_id

    async def request(
        self,
        request: OutboundRequest | dict[str, Any],
        future: FutureOptions | None = None,
        **future_overrides: Any,
    ) -> FutureResult:
        """Send a request and wait for its terminal outcome.

        Same ordering as send(). Callbacks in the options still fire.
        If the transport fails or the caller is cancelled mid-send, the
        registration is cancelled before the error propagates since nobody
        is left to await it.

        Returns:
            FutureResult with outcome SUCCEEDED, FAILED or TIMED_OUT, or
            CANCELLED if the registration was cancelled while awaited
            (e.g. by cancel() or client disconnect)
        """
        outbound = OutboundRequest.coerce(request)
        options = (future or FutureOptions()).with_overrides(**future_overrides)

        correlation_id, waiter = self.correlator.expect(options)
        try:
            await self._transmit(outbound, correlation_id)
        except BaseException:
            self.correlator.cancel(correlation_id)
            raise
        return await waiter

    async def _transmit(self, outbound: OutboundRequest, correlation_id: str) -> None:
        outbound = outbound.with_correlation_id(self.correlation_field, correlation_id)
        try:
            ack = await self.transport.send(outbound)
        except Exception as e:
            logger.error(
                f"Sending {outbound.method} {outbound.url} failed for {correlation_id}: {e}"
            )
            raise

        logger.debug(f"Sent {outbound.method} {outbound.url} as {correlation_id} (ack: {ack})")

"""Unit tests for RequestDispatcher ordering and failure handling."""

import asyncio

import httpx
import pytest

from evented_requests.config import FutureOptions
from evented_requests.correlator import ConfigurationError, Correlator, FutureState
from evented_requests.dispatcher import RequestDispatcher
from evented_requests.protocol.events import IncomingEvent
from evented_requests.protocol.requests import OutboundRequest
from evented_requests.transport.mock import MockRequestTransport


@pytest.fixture
def transport():
    return MockRequestTransport(ack={"requestQueued": True})


@pytest.fixture
def dispatcher(correlator, transport):
    return RequestDispatcher(correlator, transport)


class TestSend:
    """Test RequestDispatcher.send()."""

    @pytest.mark.asyncio
    async def test_send_registers_and_embeds_id(self, dispatcher, correlator, transport):
        """The transmitted body carries the id the future is registered under."""
        correlation_id = await dispatcher.send(
            {"url": "/api/user/", "json": {"username": "dummyuser"}},
            success_kinds=["UserCreated"],
        )

        sent = transport.recorded_requests[0]
        assert sent.url == "/api/user/"
        assert sent.body == {"username": "dummyuser", "correlationId": correlation_id}
        assert correlator.is_pending(correlation_id)
        correlator.cancel_all()

    @pytest.mark.asyncio
    async def test_send_get_embeds_id_in_query(self, correlator, transport):
        """Bodyless methods carry the id as a query parameter."""
        dispatcher = RequestDispatcher(correlator, transport, correlation_field="clientMsgId")

        correlation_id = await dispatcher.send(
            OutboundRequest.create("/api/status", method="GET"),
            FutureOptions(success_kinds=["Status"]),
        )

        sent = transport.recorded_requests[0]
        assert sent.params == {"clientMsgId": correlation_id}
        assert sent.body == {}
        correlator.cancel_all()

    @pytest.mark.asyncio
    async def test_send_with_explicit_id(self, dispatcher, transport):
        correlation_id = await dispatcher.send(
            {"url": "/api/user/"}, success_kinds=["UserCreated"], correlation_id="fixed"
        )

        assert correlation_id == "fixed"
        assert transport.recorded_requests[0].get_correlation_id("correlationId") == "fixed"
        dispatcher.correlator.cancel_all()

    @pytest.mark.asyncio
    async def test_reply_before_send_returns_still_resolves(self, correlator, recorder):
        """A result pushed while the request is in flight finds its future."""

        async def reply_immediately(request):
            correlation_id = request.get_correlation_id("correlationId")
            await correlator.dispatch(
                IncomingEvent.from_wire({"event": "UserCreated", "clientMsgId": correlation_id})
            )

        transport = MockRequestTransport(on_send=reply_immediately)
        dispatcher = RequestDispatcher(correlator, transport)

        correlation_id = await dispatcher.send(
            {"url": "/api/user/"}, **recorder.callbacks(success_kinds=["UserCreated"])
        )

        assert recorder.outcomes == ["success"]
        assert not correlator.is_pending(correlation_id)

    @pytest.mark.asyncio
    async def test_invalid_options_send_nothing(self, dispatcher, transport):
        """Configuration errors surface before anything is transmitted."""
        with pytest.raises(ConfigurationError):
            await dispatcher.send({"url": "/api/user/"}, success_kinds=["A"], error_kinds=["A"])

        assert transport.recorded_requests == []

    @pytest.mark.asyncio
    async def test_transport_failure_leaves_future_to_time_out(self, correlator, recorder):
        """The transport error propagates; the future still times out."""
        transport = MockRequestTransport(fail_with=httpx.ConnectError("refused"))
        dispatcher = RequestDispatcher(correlator, transport)

        with pytest.raises(httpx.ConnectError):
            await dispatcher.send(
                {"url": "/api/user/"},
                **recorder.callbacks(success_kinds=["UserCreated"], deadline=0.05),
            )

        assert correlator.pending_count == 1
        await asyncio.sleep(0.15)
        assert recorder.outcomes == ["timeout"]
        assert correlator.pending_count == 0


class TestRequest:
    """Test RequestDispatcher.request()."""

    @pytest.mark.asyncio
    async def test_request_waits_for_pushed_result(self, correlator, transport, dispatcher):
        """request() returns once the matching event is dispatched."""
        task = asyncio.create_task(
            dispatcher.request({"url": "/api/user/"}, error_kinds=["UserExists"])
        )
        await asyncio.sleep(0.01)
        correlation_id = transport.recorded_requests[0].get_correlation_id("correlationId")

        await correlator.dispatch(
            IncomingEvent.from_wire({"event": "UserExists", "clientMsgId": correlation_id})
        )
        result = await asyncio.wait_for(task, timeout=1.0)

        assert result.outcome == FutureState.FAILED
        assert result.event.correlation_id == correlation_id

    @pytest.mark.asyncio
    async def test_request_times_out(self, dispatcher):
        result = await dispatcher.request(
            {"url": "/api/user/"}, success_kinds=["UserCreated"], deadline=0.05
        )

        assert result.outcome == FutureState.TIMED_OUT

    @pytest.mark.asyncio
    async def test_request_transport_failure_cancels_registration(self, correlator):
        """Nobody is left to await, so the future is dropped."""
        transport = MockRequestTransport(fail_with=httpx.ConnectError("refused"))
        dispatcher = RequestDispatcher(correlator, transport)

        with pytest.raises(httpx.ConnectError):
            await dispatcher.request({"url": "/api/user/"}, success_kinds=["UserCreated"])

        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_request_cancelled_by_caller(self, dispatcher, correlator):
        """Cancelling the awaiting task drops the pending future."""
        task = asyncio.create_task(
            dispatcher.request({"url": "/api/user/"}, success_kinds=["UserCreated"])
        )
        await asyncio.sleep(0.01)
        assert correlator.pending_count == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)

        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_request_cancelled_mid_send(self, correlator, recorder):
        """Cancelling while the request is in flight drops the registration."""

        async def slow_send(request):
            await asyncio.sleep(1)

        dispatcher = RequestDispatcher(correlator, MockRequestTransport(on_send=slow_send))
        task = asyncio.create_task(
            dispatcher.request(
                {"url": "/api/user/"},
                **recorder.callbacks(success_kinds=["UserCreated"], deadline=0.1),
            )
        )
        await asyncio.sleep(0.01)
        assert correlator.pending_count == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.2)

        assert correlator.pending_count == 0
        assert recorder.outcomes == []


@pytest.mark.asyncio
async def test_dispatcher_uses_own_correlator():
    """Dispatchers over separate correlators never share futures."""
    first = RequestDispatcher(Correlator(), MockRequestTransport())
    second = RequestDispatcher(Correlator(), MockRequestTransport())

    await first.send({"url": "/a"}, success_kinds=["Done"], correlation_id="same")
    await second.send({"url": "/b"}, success_kinds=["Done"], correlation_id="same")

    assert first.correlator.pending_ids() == ["same"]
    assert second.correlator.pending_ids() == ["same"]
    first.correlator.cancel_all()
    second.correlator.cancel_all()

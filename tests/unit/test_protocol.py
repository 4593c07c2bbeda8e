"""Unit tests for wire types: events, requests and correlation ids."""

import pytest

from evented_requests.protocol.events import EventKind, IncomingEvent
from evented_requests.protocol.ids import CorrelationIdGenerator
from evented_requests.protocol.requests import HTTPMethod, OutboundRequest

# =============================================================================
# IncomingEvent
# =============================================================================


class TestIncomingEventFromWire:
    """Test decoding push channel messages."""

    def test_server_message(self):
        """The demo server shape: event + clientMsgId."""
        event = IncomingEvent.from_wire(
            {"event": "UserCreated", "clientMsgId": "req_1", "timestamp": "t"}
        )

        assert event.kind == "UserCreated"
        assert event.correlation_id == "req_1"
        assert event.is_correlated() is True
        assert event.payload["timestamp"] == "t"

    @pytest.mark.parametrize("key", ["event", "kind", "type"])
    def test_kind_keys(self, key):
        assert IncomingEvent.from_wire({key: "Done"}).kind == "Done"

    @pytest.mark.parametrize("key", ["clientMsgId", "correlationId", "correlation_id"])
    def test_correlation_keys(self, key):
        assert IncomingEvent.from_wire({"event": "Done", key: "abc"}).correlation_id == "abc"

    def test_numeric_correlation_id_stringified(self):
        assert IncomingEvent.from_wire({"event": "Done", "clientMsgId": 7}).correlation_id == "7"

    def test_uncorrelated(self):
        """A null id means the event answers no request."""
        event = IncomingEvent.from_wire({"sid": 1, "event": "connected", "clientMsgId": None})

        assert event.kind == EventKind.CONNECTED.value
        assert event.is_correlated() is False

    def test_missing_kind(self):
        with pytest.raises(ValueError, match="no event kind"):
            IncomingEvent.from_wire({"clientMsgId": "req_1"})


class TestIncomingEventCreate:
    """Test IncomingEvent.create() and to_wire()."""

    def test_create(self):
        event = IncomingEvent.create(EventKind.CONNECTED, {"sid": 3})

        assert event.kind == "connected"
        assert event.payload == {"sid": 3}
        assert event.correlation_id is None

    def test_to_wire_decodes_to_same_event(self):
        """to_wire() output is accepted by from_wire()."""
        event = IncomingEvent.create("UserExists", {"reason": "taken"}, correlation_id="req_2")

        decoded = IncomingEvent.from_wire(event.to_wire())

        assert decoded.kind == "UserExists"
        assert decoded.correlation_id == "req_2"
        assert decoded.payload["reason"] == "taken"


# =============================================================================
# OutboundRequest
# =============================================================================


class TestOutboundRequest:
    """Test request construction and correlation id embedding."""

    def test_coerce_dict_with_json_alias(self):
        """Dicts may use `json` for the body, like httpx."""
        request = OutboundRequest.coerce({"url": "/api/user/", "json": {"username": "u"}})

        assert request.method == "POST"
        assert request.body == {"username": "u"}

    def test_coerce_passes_requests_through(self):
        request = OutboundRequest(url="/x")

        assert OutboundRequest.coerce(request) is request

    def test_post_id_goes_into_body(self):
        request = OutboundRequest.create("/api/user/", data={"username": "u"})

        tagged = request.with_correlation_id("correlationId", "req_1")

        assert tagged.body == {"username": "u", "correlationId": "req_1"}
        assert tagged.params == {}
        assert tagged.get_correlation_id("correlationId") == "req_1"
        assert request.body == {"username": "u"}

    @pytest.mark.parametrize("method", [HTTPMethod.GET, "delete"])
    def test_bodyless_id_goes_into_query(self, method):
        request = OutboundRequest.create("/api/items", method=method, data={"q": "x"})

        tagged = request.with_correlation_id("clientMsgId", "req_9")

        assert request.has_body is False
        assert tagged.params == {"q": "x", "clientMsgId": "req_9"}
        assert tagged.body == {}

    def test_get_correlation_id_missing(self):
        assert OutboundRequest(url="/x").get_correlation_id("correlationId") is None

    def test_url_required(self):
        with pytest.raises(ValueError):
            OutboundRequest.coerce({"method": "POST"})


# =============================================================================
# Correlation ids
# =============================================================================


class TestCorrelationIdGenerator:
    """Test correlation id generation."""

    def test_ids_are_sequential_with_shared_prefix(self):
        generate = CorrelationIdGenerator()

        first, second = generate(), generate()

        assert first != second
        assert first.rsplit("_", 1)[0] == second.rsplit("_", 1)[0]
        assert first.endswith("_1")
        assert second.endswith("_2")

    def test_generators_do_not_collide(self):
        """Separate generators use different random prefixes."""
        assert CorrelationIdGenerator()() != CorrelationIdGenerator()()

    def test_custom_prefix(self):
        assert CorrelationIdGenerator(prefix="user")().startswith("user_")

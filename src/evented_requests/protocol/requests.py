"""Outbound request definitions.

Requests travel over the request channel (HTTP). Their results do not
come back in the HTTP response: the server pushes them later over the
push channel, echoing the correlation id embedded here.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class HTTPMethod(str, Enum):
    """Supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


# Methods whose correlation id travels in the query string
BODYLESS_METHODS = frozenset({HTTPMethod.GET.value, HTTPMethod.DELETE.value})


class OutboundRequest(BaseModel):
    """A request from client to server.

    Example:
        {
            "method": "POST",
            "url": "/api/user/",
            "json": {"username": "dummyuser", "correlationId": "req_3f2a9c01_1"}
        }
    """

    method: str = HTTPMethod.POST.value
    url: str
    params: dict[str, Any] = Field(default_factory=dict)
    body: dict[str, Any] = Field(default_factory=dict, alias="json")
    headers: dict[str, str] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}

    @property
    def has_body(self) -> bool:
        """Check if this request's parameters travel in a JSON body."""
        return self.method.upper() not in BODYLESS_METHODS

    def get_correlation_id(self, field: str) -> str | None:
        """Read the correlation id embedded under `field`, if any."""
        source = self.body if self.has_body else self.params
        value = source.get(field)
        return str(value) if value is not None else None

    def with_correlation_id(self, field: str, correlation_id: str) -> OutboundRequest:
        """Return a copy carrying the correlation id.

        The id goes into the JSON body for methods with a body and into
        the query string otherwise. Existing parameters are preserved.
        """
        if self.has_body:
            return self.model_copy(update={"body": {**self.body, field: correlation_id}})
        return self.model_copy(update={"params": {**self.params, field: correlation_id}})

    @classmethod
    def create(
        cls,
        url: str,
        method: str | HTTPMethod = HTTPMethod.POST,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> OutboundRequest:
        """Factory method placing `data` where the method expects it."""
        method_value = method.value if isinstance(method, HTTPMethod) else method.upper()
        request = cls(method=method_value, url=url, headers=headers or {})
        if not data:
            return request
        if request.has_body:
            return request.model_copy(update={"body": dict(data)})
        return request.model_copy(update={"params": dict(data)})

    @classmethod
    def coerce(cls, request: OutboundRequest | dict[str, Any]) -> OutboundRequest:
        """Accept either a request or a dict of its fields."""
        if isinstance(request, OutboundRequest):
            return request
        return cls.model_validate(request)

"""Shared fixtures for ChatKit tests."""

import json
from typing import Any

import httpx
import pytest

from chatkit.application.services.block_sink import MessageStore
from chatkit.domain.events import Frame
from chatkit.domain.models import ChatMessage, Role, RoleType


@pytest.fixture
def store():
    """Create an empty MessageStore."""
    return MessageStore()


@pytest.fixture
def assistant_message(store):
    """Add an empty assistant message with id 'msg-1' to the store."""
    message = ChatMessage(message_id="msg-1", role=Role(type=RoleType.ASSISTANT, name="AI Assistant"))
    store.add_message(message)
    return message


@pytest.fixture
def sse():
    """Build an SSE byte stream.

    Each argument is either a payload (written as a bare ``data:`` line) or an
    ``(event_name, payload)`` tuple. String payloads are written verbatim.
    """

    def build(*events: Any) -> bytes:
        lines: list[str] = []
        for event in events:
            if isinstance(event, tuple):
                name, data = event
                lines.append(f"event: {name}\n")
            else:
                data = event
            body = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
            lines.append(f"data: {body}\n\n")
        return "".join(lines).encode("utf-8")

    return build


@pytest.fixture
def frame():
    """Build a Frame from a payload."""

    def build(payload: Any, event_type: str = "") -> Frame:
        return Frame(event_type=event_type, raw_data=json.dumps(payload, ensure_ascii=False), payload=payload)

    return build


class RecordingTransport:
    """httpx.MockTransport handler that routes by (method, path) and records requests.

    Route values are callables taking the request and returning an ``httpx.Response``.
    Unrouted requests get a 404.
    """

    def __init__(self, routes: dict[tuple[str, str], Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": f"no route for {request.method} {request.url.path}"})
        return handler(request)

    def json_body(self, index: int) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def mock_http():
    """Build an AsyncClient backed by a RecordingTransport.

    Returns a factory: ``client, transport = mock_http({("GET", "/path"): handler})``.
    """

    def build(routes: dict[tuple[str, str], Any]) -> tuple[httpx.AsyncClient, RecordingTransport]:
        transport = RecordingTransport(routes)
        return httpx.AsyncClient(transport=httpx.MockTransport(transport)), transport

    return build

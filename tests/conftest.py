"""Shared fixtures for the preprocessor test suite."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

SVG_BODY = '<?xml version="1.0" encoding="UTF-8"?>\n<svg xmlns="http://www.w3.org/2000/svg">{}</svg>'


def kroki_echo(request: httpx.Request) -> httpx.Response:
    """Fake Kroki: answer with an SVG naming the diagram type and source."""
    payload = json.loads(request.content)
    body = f"{payload['diagram_type']}:{payload['diagram_source']}"
    return httpx.Response(200, text=SVG_BODY.format(body))


@pytest.fixture
def mock_client() -> Callable[..., httpx.AsyncClient]:
    """Build an AsyncClient backed by an httpx.MockTransport handler."""

    def _make(handler: Callable = kroki_echo) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def echo_handler() -> Callable[[httpx.Request], httpx.Response]:
    return kroki_echo


@pytest.fixture
def requests_seen() -> list[httpx.Request]:
    return []


@pytest.fixture
def recording_handler(requests_seen: list[httpx.Request]) -> Callable:
    """Echo handler that records every request it receives."""

    def _handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(request)
        return kroki_echo(request)

    return _handler

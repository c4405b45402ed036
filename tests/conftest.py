"""Pytest configuration and fixtures."""

from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock

import pytest

from cfkv.client import KVClient
from cfkv.exceptions import TransportError
from cfkv.protocols import TransportResponse


@dataclass
class RecordedRequest:
    """A request captured by FakeTransport."""

    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None
    timeout: float


@dataclass
class FakeTransport:
    """Transport double returning queued responses.

    Queue ``TransportResponse`` objects or ``TransportError`` instances; when
    the queue is empty every request gets ``default``.
    """

    responses: list[Any] = field(default_factory=list)
    default: TransportResponse = field(
        default_factory=lambda: TransportResponse(200, b"")
    )
    requests: list[RecordedRequest] = field(default_factory=list)

    def respond(self, status_code: int, body: bytes | str = b"") -> None:
        if isinstance(body, str):
            body = body.encode()
        self.responses.append(TransportResponse(status_code, body))

    def fail(self, message: str) -> None:
        self.responses.append(TransportError(message))

    @property
    def last(self) -> RecordedRequest:
        return self.requests[-1]

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        self.requests.append(RecordedRequest(method, url, dict(headers), body, timeout))
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


BASE_URL = "https://api.cloudflare.com/client/v4/accounts/A/storage/kv/namespaces/N"


@pytest.fixture(autouse=True)
def no_debug_env(monkeypatch):
    """Keep the host debug flag out of tests unless a test sets it."""
    monkeypatch.delenv("CFKV_DEBUG", raising=False)


@pytest.fixture
def transport() -> FakeTransport:
    """Create a fake transport."""
    return FakeTransport()


@pytest.fixture
def sink() -> MagicMock:
    """Create a mock error sink."""
    return MagicMock()


@pytest.fixture
def client(transport, sink) -> KVClient:
    """Create a KV client for account A, token T, namespace N."""
    return KVClient("A", "T", "N", transport=transport, sink=sink)


@pytest.fixture
def base_url() -> str:
    """Namespace URL for the test client."""
    return BASE_URL

"""Transport protocol for HTTP backends."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class TransportResponse:
    """Status code and raw body of a completed HTTP exchange."""

    status_code: int
    body: bytes = b""


@runtime_checkable
class Transport(Protocol):
    """Protocol for HTTP transports (httpx, test fakes)."""

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        """Perform one blocking HTTP exchange.

        Raises:
            TransportError: If no HTTP status could be obtained
        """
        ...

"""Default HTTP transport built on httpx."""

import httpx

from cfkv.exceptions import TransportError
from cfkv.protocols.transport import TransportResponse


class HttpxTransport:
    """Blocking transport that opens a fresh httpx client per request.

    Args:
        mock_transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
            handed to each client, used in tests
    """

    def __init__(self, mock_transport: httpx.BaseTransport | None = None) -> None:
        self._mock_transport = mock_transport

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        """Perform one HTTP exchange.

        Raises:
            TransportError: On connect, DNS, TLS, timeout, protocol or
                response decoding failure
        """
        try:
            with httpx.Client(
                timeout=httpx.Timeout(timeout),
                transport=self._mock_transport,
            ) as client:
                response = client.request(
                    method,
                    url,
                    headers=headers,
                    content=body,
                )
                return TransportResponse(
                    status_code=response.status_code,
                    body=response.content,
                )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise TransportError(str(e) or type(e).__name__) from e

"""Cloudflare Workers KV client.

Maps get/put/delete/list calls onto the KV REST API of a single namespace.
No exception crosses the public operations: failures surface as ``None`` or
``False`` and the detail is recorded in ``last_error`` / ``last_status_code``
(or returned explicitly by the ``*_result`` variants).
"""

import dataclasses
import json
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote, urlencode

from pydantic import BaseModel

from cfkv.config import DEFAULT_API_BASE, KVConfig, is_debug_enabled, namespace_url
from cfkv.exceptions import TransportError
from cfkv.observability import (
    OperationContext,
    Timer,
    emit_counter,
    emit_timer,
    get_logger,
)
from cfkv.outcomes import (
    ApiFailure,
    NotFound,
    OperationResult,
    RequestSpec,
    ResponseOutcome,
    Success,
    TransportFailure,
)
from cfkv.protocols import ErrorSink, Transport
from cfkv.sinks import LoggingSink
from cfkv.transport import HttpxTransport

logger = get_logger(__name__)

REQUEST_TIMEOUT_SECONDS = 15
DEFAULT_CONTENT_TYPE = "application/json"
LIST_KEYS_MAX_LIMIT = 1000
LIST_KEYS_PARSE_ERROR = "Failed to parse list_keys response."


def encode_key(key: str) -> str:
    """Percent-encode a key for use as a single path segment."""
    return quote(key, safe="")


def encode_value(value: Any) -> tuple[bytes, str]:
    """Encode a value for storage.

    Returns:
        Tuple of (body, content_type). Mappings, sequences, pydantic models
        and dataclass instances become compact JSON; bytes pass through;
        None is stored as an empty body; everything else is stored as its
        string form.

    Raises:
        TypeError: If a structured value holds something JSON cannot encode
        ValueError: If a structured value contains a circular reference
    """
    if value is None:
        return b"", "text/plain"
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)

    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":")).encode(), "application/json"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value), "text/plain"
    return str(value).encode(), "text/plain"


def decode_value(body: bytes) -> Any:
    """Decode a stored value, preferring JSON and falling back to raw text.

    A value stored as the text ``123`` comes back as the integer 123; the
    wire format carries no type information to tell them apart.
    """
    text = body.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def _api_error_detail(body: bytes, status_code: int) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        data = None

    errors = data.get("errors") if isinstance(data, dict) else None
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict) and first.get("message"):
            return str(first["message"])
        return "Unknown API error."
    return f"Received HTTP {status_code}"


class KVClient:
    """Client for one Cloudflare KV namespace.

    Example:
        kv = KVClient(account_id, api_token, namespace_id)
        if not kv.put("user:1", {"name": "Ada"}, expiration_ttl=3600):
            print(kv.last_error, kv.last_status_code)
        user = kv.get("user:1")

    An instance is not safe for concurrent use through the classic methods,
    since they share ``last_error`` and ``last_status_code``. The
    ``*_result`` methods leave instance state untouched.
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        namespace_id: str,
        *,
        transport: Transport | None = None,
        sink: ErrorSink | None = None,
        debug: bool | None = None,
        api_base: str = DEFAULT_API_BASE,
    ) -> None:
        """Initialize the client.

        Args:
            account_id: Cloudflare account ID
            api_token: API token with Workers KV access
            namespace_id: KV namespace ID
            transport: HTTP transport (defaults to HttpxTransport)
            sink: Receiver of displayed error notices (defaults to LoggingSink)
            debug: Host debug flag; read from CFKV_DEBUG when None. Enables
                error display.
            api_base: Cloudflare API root
        """
        self._base_url = namespace_url(api_base, account_id, namespace_id)
        self._api_token = api_token
        self.namespace_id = namespace_id
        self.transport = transport or HttpxTransport()
        self.sink = sink or LoggingSink()

        self.showing_errors = False
        self.suppress_errors = False
        self.last_error = ""
        self.last_status_code: int | None = None

        if debug is None:
            debug = is_debug_enabled()
        if debug:
            self.show_errors()

    @classmethod
    def from_config(cls, config: KVConfig, **kwargs: Any) -> "KVClient":
        """Create a client from a validated configuration."""
        client = cls(
            config.account_id,
            config.api_token,
            config.namespace_id,
            debug=config.debug,
            api_base=config.api_base,
            **kwargs,
        )
        if config.show_errors:
            client.show_errors()
        return client

    @property
    def base_url(self) -> str:
        """Namespace URL every request path is appended to."""
        return self._base_url

    # -- public operations -------------------------------------------------

    def get(self, key: str) -> Any:
        """Read a value.

        Returns:
            The decoded JSON value, the raw text if the body is not JSON, or
            None if the key does not exist or the request failed
        """
        self._flush_errors()
        return self._record(self.get_result(key)).value

    def put(self, key: str, value: Any, expiration_ttl: int | None = None) -> bool:
        """Write a value, optionally expiring after ``expiration_ttl`` seconds.

        Returns:
            True on success, False on failure
        """
        self._flush_errors()
        return self._record(self.put_result(key, value, expiration_ttl)).ok

    def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True on success, False on failure
        """
        self._flush_errors()
        return self._record(self.delete_result(key)).ok

    def list_keys(
        self,
        prefix: str = "",
        limit: int = 100,
        cursor: str | None = None,
    ) -> dict[str, Any] | None:
        """List keys in the namespace.

        Args:
            prefix: Only return keys starting with this prefix
            limit: Page size, clamped to 1..1000; a falsy limit is not sent
            cursor: Pagination cursor from a previous page

        Returns:
            The API ``result`` block (``keys``, ``list_complete``, ``cursor``)
            or None on error
        """
        self._flush_errors()
        return self._record(self.list_keys_result(prefix, limit, cursor)).value

    def iter_keys(
        self,
        prefix: str = "",
        limit: int = LIST_KEYS_MAX_LIMIT,
    ) -> Iterator[dict[str, Any]]:
        """Yield every key entry under a prefix, following pagination cursors.

        Iteration stops quietly at the first failed page; its diagnostics are
        left in ``last_error`` / ``last_status_code``. A page whose result is
        not a mapping with a ``keys`` list counts as a parse failure.
        """
        cursor = None
        while True:
            page = self.list_keys(prefix, limit, cursor)
            if page is None:
                return

            keys = page.get("keys", []) if isinstance(page, dict) else None
            if not isinstance(keys, list):
                logger.warning(LIST_KEYS_PARSE_ERROR, context={"result_type": type(page).__name__})
                self.last_error = LIST_KEYS_PARSE_ERROR
                self.print_error()
                return
            yield from keys

            cursor = page.get("cursor")
            if page.get("list_complete", True) or not cursor:
                return

    # -- explicit-result operations ----------------------------------------

    def get_result(self, key: str) -> OperationResult[Any]:
        """Read a value, returning the value and diagnostics together."""
        with OperationContext("get", self.namespace_id, key):
            spec = RequestSpec("GET", f"/values/{encode_key(key)}")
            outcome = self._execute(spec, allow_not_found=True)

            value = decode_value(outcome.body) if isinstance(outcome, Success) else None
            return OperationResult.from_outcome(outcome, value)

    def put_result(
        self,
        key: str,
        value: Any,
        expiration_ttl: int | None = None,
    ) -> OperationResult[bool]:
        """Write a value, returning success and diagnostics together."""
        with OperationContext("put", self.namespace_id, key):
            path = f"/values/{encode_key(key)}"
            if expiration_ttl:
                path += "?" + urlencode({"expiration_ttl": expiration_ttl})

            try:
                body, content_type = encode_value(value)
            except (TypeError, ValueError) as e:
                message = f"Failed to encode value: {e}"
                logger.warning(message, error=e)
                self.print_error(message)
                return OperationResult(value=False, ok=False, error=message)

            outcome = self._execute(RequestSpec("PUT", path, body, content_type))
            return OperationResult.from_outcome(outcome, isinstance(outcome, Success))

    def delete_result(self, key: str) -> OperationResult[bool]:
        """Delete a key, returning success and diagnostics together."""
        with OperationContext("delete", self.namespace_id, key):
            spec = RequestSpec("DELETE", f"/values/{encode_key(key)}")
            outcome = self._execute(spec)
            return OperationResult.from_outcome(outcome, isinstance(outcome, Success))

    def list_keys_result(
        self,
        prefix: str = "",
        limit: int = 100,
        cursor: str | None = None,
    ) -> OperationResult[dict[str, Any] | None]:
        """List keys, returning the result block and diagnostics together."""
        with OperationContext("list_keys", self.namespace_id):
            params: dict[str, Any] = {}
            if prefix:
                params["prefix"] = prefix
            if limit:
                params["limit"] = max(1, min(LIST_KEYS_MAX_LIMIT, limit))
            if cursor:
                params["cursor"] = cursor

            path = "/keys"
            if params:
                path += "?" + urlencode(params)

            outcome = self._execute(RequestSpec("GET", path))
            if not isinstance(outcome, Success):
                return OperationResult.from_outcome(outcome, None)

            try:
                data = json.loads(outcome.body)
            except ValueError:
                data = None

            if not isinstance(data, dict) or not data.get("success") or data.get("result") is None:
                logger.warning(LIST_KEYS_PARSE_ERROR, context={"status": outcome.status_code})
                self.print_error(LIST_KEYS_PARSE_ERROR)
                return OperationResult(
                    value=None,
                    ok=False,
                    error=LIST_KEYS_PARSE_ERROR,
                    status_code=outcome.status_code,
                )

            return OperationResult(value=data["result"], ok=True, status_code=outcome.status_code)

    # -- request execution -------------------------------------------------

    def _execute(self, spec: RequestSpec, allow_not_found: bool = False) -> ResponseOutcome:
        """Send a request and classify the response.

        Args:
            spec: Request to send
            allow_not_found: Treat HTTP 404 as NotFound instead of a failure
        """
        url = self._base_url + spec.path_and_query
        headers = {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": spec.content_type or DEFAULT_CONTENT_TYPE,
        }
        log_context = {"method": spec.method, "path": spec.path_and_query}

        try:
            with Timer() as timer:
                response = self.transport.request(
                    spec.method,
                    url,
                    headers,
                    spec.body,
                    REQUEST_TIMEOUT_SECONDS,
                )
        except TransportError as e:
            message = str(e)
            logger.warning("KV transport failure", context=log_context, error=e)
            emit_timer(
                "kv.request.duration_ms",
                timer.duration_ms,
                {"method": spec.method, "status": "transport_error"},
            )
            emit_counter("kv.request.failures", {"method": spec.method, "kind": "transport"})
            self.print_error(message)
            return TransportFailure(message)

        status = response.status_code
        log_context["status"] = status
        emit_timer(
            "kv.request.duration_ms",
            timer.duration_ms,
            {"method": spec.method, "status": status},
        )

        if status == 404 and allow_not_found:
            logger.debug("KV key not found", context=log_context, duration_ms=timer.duration_ms)
            return NotFound(status)

        if status < 200 or status >= 300:
            message = "KV API Error: " + _api_error_detail(response.body, status)
            logger.warning(message, context=log_context, duration_ms=timer.duration_ms)
            emit_counter("kv.request.failures", {"method": spec.method, "kind": "api"})
            self.print_error(message)
            return ApiFailure(status, message)

        logger.debug("KV request completed", context=log_context, duration_ms=timer.duration_ms)
        return Success(status, response.body)

    def _record(self, result: OperationResult[Any]) -> OperationResult[Any]:
        self.last_error = result.error
        self.last_status_code = result.status_code
        return result

    def _flush_errors(self) -> None:
        self.last_error = ""
        self.last_status_code = None

    # -- error display -----------------------------------------------------

    def print_error(self, message: str | None = None) -> None:
        """Send an error notice to the sink if error display is on.

        Args:
            message: Notice text; defaults to ``last_error``
        """
        if not self.showing_errors or self.suppress_errors:
            return
        self.sink.emit(message or self.last_error)

    def show_errors(self, show: bool = True) -> bool:
        """Turn error display on or off.

        Returns:
            The previous setting
        """
        old = self.showing_errors
        self.showing_errors = show
        return old

    def hide_errors(self) -> bool:
        """Turn error display off, returning the previous setting."""
        return self.show_errors(False)

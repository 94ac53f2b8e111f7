"""Instrumented HTTP client with auto-timing and metric emission."""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import aiohttp

if TYPE_CHECKING:
    from collections.abc import Callable

    from rampforge._internal.types import Headers


def _noop_callback(metric: RequestMetric) -> None:
    """Default no-op metric callback."""


@dataclass
class RequestMetric:
    """Raw metric emitted for every HTTP request.

    Attributes:
        timestamp: Monotonic timestamp when the request started.
        name: Logical name for metric grouping (e.g., "Homepage").
        method: HTTP method (GET, POST, etc.).
        url: Full request URL.
        status_code: HTTP response status code (0 if the request failed).
        latency_ms: Response time in milliseconds, body read included.
        content_length: Response body size in bytes.
        error: Error message if the request failed, None otherwise.
        user_id: ID of the virtual user that made the request.
        cancelled: The request was cancelled before it completed, so
            ``latency_ms`` is only the time until cancellation.
    """

    timestamp: float
    name: str
    method: str
    url: str
    status_code: int
    latency_ms: float
    content_length: int
    error: str | None = None
    user_id: int = 0
    cancelled: bool = False


@dataclass(frozen=True)
class Response:
    """Immutable snapshot of a completed HTTP response.

    The body is read eagerly so the underlying connection goes back to the
    pool before any check runs.

    Attributes:
        status: HTTP status code.
        url: Final request URL.
        headers: Response headers.
        body: Raw response body.
        latency_ms: Time to first byte plus body read, in milliseconds.
    """

    status: int
    url: str
    headers: Headers = field(default_factory=dict)
    body: bytes = b""
    latency_ms: float = 0.0

    def text(self, encoding: str = "utf-8") -> str:
        """Decode the body as text, replacing undecodable bytes."""
        return self.body.decode(encoding, errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON."""
        return json.loads(self.body)


class HttpClient:
    """Instrumented async HTTP client wrapping ``aiohttp.ClientSession``.

    Every request is auto-timed and emits a ``RequestMetric`` through
    ``metric_callback`` whether it succeeds or fails.  Failures are
    re-raised after the metric is emitted.

    Attributes:
        base_url: Prefix for relative request paths.
        headers: Mutable headers applied to every request.
    """

    def __init__(
        self,
        base_url: str = "",
        headers: Headers | None = None,
        metric_callback: Callable[[RequestMetric], None] | None = None,
        user_id: int = 0,
        timeout: float = 30.0,
        pool_size: int = 100,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Prefix for request paths that are not absolute URLs.
            headers: Default headers applied to every request.
            metric_callback: Invoked with a ``RequestMetric`` after each
                request.  Defaults to a no-op.
            user_id: Virtual user identifier for metric tagging.
            timeout: Total request timeout in seconds.
            pool_size: Maximum simultaneous connections.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: Headers = dict(headers or {})
        self._metric_callback = metric_callback or _noop_callback
        self._user_id = user_id
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._pool_size = pool_size
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(
            timeout=self._timeout,
            connector=aiohttp.TCPConnector(limit=self._pool_size),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        """Send a GET request."""
        return await self.request("GET", path, name=name, **kwargs)

    async def post(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        """Send a POST request."""
        return await self.request("POST", path, name=name, **kwargs)

    async def put(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        """Send a PUT request."""
        return await self.request("PUT", path, name=name, **kwargs)

    async def delete(self, path: str, *, name: str | None = None, **kwargs: Any) -> Response:
        """Send a DELETE request."""
        return await self.request("DELETE", path, name=name, **kwargs)

    def resolve_url(self, path: str) -> str:
        """Return *path* unchanged if absolute, else prefixed with base_url."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        name: str | None = None,
        headers: Headers | None = None,
        **kwargs: Any,
    ) -> Response:
        """Send an HTTP request with auto-timing and metric emission.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: Absolute URL, or a path appended to base_url.
            name: Logical name for metric grouping.  Defaults to the URL.
            headers: Extra headers for this request only.
            **kwargs: Additional keyword arguments passed to aiohttp.

        Returns:
            A ``Response`` snapshot with the body already read.

        Raises:
            RuntimeError: If the client is used outside of an async context
                manager.
            aiohttp.ClientError: On connection or protocol failures.
            TimeoutError: If the request exceeds the timeout.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        url = self.resolve_url(path)
        method = method.upper()
        metric_name = name or url
        merged_headers = {**self.headers, **(headers or {})}

        start = time.monotonic()
        status_code = 0
        body = b""
        error: str | None = None
        cancelled = False

        try:
            async with self._session.request(
                method,
                url,
                headers=merged_headers,
                **kwargs,
            ) as resp:
                status_code = resp.status
                body = await resp.read()
                response_headers = dict(resp.headers)
        except asyncio.CancelledError:
            cancelled = True
            error = "CancelledError: request cancelled before completion"
            raise
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            raise
        finally:
            latency_ms = (time.monotonic() - start) * 1000
            self._metric_callback(
                RequestMetric(
                    timestamp=start,
                    name=metric_name,
                    method=method,
                    url=url,
                    status_code=status_code,
                    latency_ms=latency_ms,
                    content_length=len(body),
                    error=error,
                    user_id=self._user_id,
                    cancelled=cancelled,
                )
            )

        return Response(
            status=status_code,
            url=url,
            headers=response_headers,
            body=body,
            latency_ms=latency_ms,
        )

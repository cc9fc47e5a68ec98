"""
HTTP/2 transport for APNS requests.
"""

import logging
import ssl
from typing import Optional, Protocol, Union

import httpx

from apnpush.push.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)
from apnpush.push.exceptions import HttpSenderError
from apnpush.push.models import Request, Response

logger = logging.getLogger(__name__)


class HttpSenderProtocol(Protocol):
    async def open(self) -> None: ...

    async def send(self, request: Request) -> Response: ...

    async def close(self) -> None: ...


class HttpSender:
    """
    Send requests over a shared HTTP/2 connection pool.

    A single httpx AsyncClient is shared by every concurrent request. HTTP/2
    multiplexes the streams, so ``max_connections`` only needs to cover the
    case where APNS refuses more streams on one connection.

    Attributes:
        timeout: Read/write timeout in seconds
        connect_timeout: Connect timeout in seconds
        max_connections: Connection pool size
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        max_connections: int = DEFAULT_CONCURRENCY,
        verify: Union[bool, ssl.SSLContext] = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.max_connections = max_connections
        self._verify = verify
        self._transport = transport

        # HTTP/2 client (lazy initialized)
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def open(self) -> None:
        """Create the HTTP/2 client if it does not exist yet."""
        await self._get_client()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP/2 client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                http2=True,
                verify=self._verify,
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=self.max_connections,
                ),
                transport=self._transport,
            )
            logger.debug(
                "APNS HTTP/2 client created",
                extra={"max_connections": self.max_connections}
            )
        return self._client

    async def send(self, request: Request) -> Response:
        """
        POST a finished request.

        Args:
            request: Request produced by the protocol

        Returns:
            Response with status code, body and headers

        Raises:
            HttpSenderError: The request failed at the transport level
        """
        client = await self._get_client()

        try:
            response = await client.post(
                request.url,
                content=request.content,
                headers=request.headers,
            )
        except httpx.HTTPError as e:
            raise HttpSenderError(f"{type(e).__name__}: {e}") from e

        return Response(
            status_code=response.status_code,
            content=response.content,
            headers={k.lower(): v for k, v in response.headers.items()},
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("APNS HTTP/2 client closed")
        self._client = None

    async def __aenter__(self) -> "HttpSender":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

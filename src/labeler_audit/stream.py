"""
WebSocket transport for com.atproto.label.subscribeLabels.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK, WebSocketException

from .errors import SubscriptionTransportError


SUBSCRIBE_LABELS_METHOD = "com.atproto.label.subscribeLabels"

STREAM_SCHEMES = {
    "http": "ws",
    "https": "wss",
    "ws": "ws",
    "wss": "wss",
}


def stream_endpoint(endpoint: str | httpx.URL) -> str:
    """
    Map a labeler service URL onto its streaming scheme (http -> ws, https -> wss).

    Raises:
        ValueError: If the URL scheme has no streaming counterpart
    """
    url = httpx.URL(str(endpoint))
    scheme = STREAM_SCHEMES.get(url.scheme)
    if scheme is None:
        raise ValueError(f"no streaming scheme for {url.scheme!r} URLs")
    return f"{scheme}://{url.netloc.decode('ascii')}"


def subscription_url(endpoint: str | httpx.URL, cursor: int = 0) -> str:
    """Build the subscribeLabels URL for a labeler, keeping only its origin."""
    return f"{stream_endpoint(endpoint)}/xrpc/{SUBSCRIBE_LABELS_METHOD}?cursor={cursor}"


class WebSocketLabelStream:
    """Binary frames from an open subscription; None marks a clean close."""

    def __init__(self, connection: ClientConnection):
        self._connection = connection

    async def recv(self) -> bytes | None:
        try:
            return await self._connection.recv()
        except ConnectionClosedOK:
            return None
        except ConnectionClosedError as exc:
            raise SubscriptionTransportError(f"connection closed abnormally ({exc})") from exc


@asynccontextmanager
async def open_label_stream(url: str, user_agent: str) -> AsyncIterator[WebSocketLabelStream]:
    """
    Open a subscribeLabels WebSocket.

    Raises:
        SubscriptionTransportError: If the connection cannot be established
    """
    try:
        connection = await connect(url, user_agent_header=user_agent, max_size=None)
    except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
        raise SubscriptionTransportError(f"cannot connect to {url} ({exc})") from exc

    logging.debug("Connected to %s", url)
    try:
        yield WebSocketLabelStream(connection)
    finally:
        await connection.close()

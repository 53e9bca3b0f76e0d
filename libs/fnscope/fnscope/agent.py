"""
Outbound HTTP agent

Thin helpers around httpx.AsyncClient. A client created per invocation pays
for connection setup every time; a client kept in the instance scope keeps
its connections alive across invocations.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def new_client(
    keep_alive: bool = True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> httpx.AsyncClient:
    """Create an async HTTP client"""
    limits = httpx.Limits(
        max_connections=100,
        max_keepalive_connections=20 if keep_alive else 0,
        keepalive_expiry=30.0,
    )
    return httpx.AsyncClient(transport=transport, timeout=timeout, limits=limits)


async def fetch_text(client: httpx.AsyncClient, url: str) -> str:
    """
    GET ``url`` and return the whole body as text.

    The body is streamed and buffered chunk by chunk until the end of the
    stream. Request errors (httpx.HTTPError, httpx.InvalidURL) propagate to
    the caller.
    """
    chunks = []
    async with client.stream("GET", url) as response:
        response.encoding = "utf-8"
        async for chunk in response.aiter_text():
            chunks.append(chunk)

    logger.debug(f"GET {url} -> {response.status_code} ({len(chunks)} chunk(s))")
    return "".join(chunks)

"""
Test helpers: fake outbound transports for httpx clients
"""

from typing import Iterable, List

import httpx

from .agent import new_client


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered as separate chunks"""

    def __init__(self, chunks: Iterable[str]):
        self.chunks: List[str] = list(chunks)

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk.encode("utf-8")


def chunked_transport(chunks: Iterable[str], status_code: int = 200) -> httpx.MockTransport:
    """Transport answering every request with ``chunks`` then end-of-stream"""
    chunks = list(chunks)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, stream=ChunkedStream(chunks))

    return httpx.MockTransport(handler)


def failing_transport(message: str) -> httpx.MockTransport:
    """Transport failing every request with a connection error"""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(message, request=request)

    return httpx.MockTransport(handler)


class ClientFactory:
    """Client factory bound to a transport, counting the clients it creates"""

    def __init__(self, transport: httpx.AsyncBaseTransport):
        self.transport = transport
        self.created = 0

    def __call__(self) -> httpx.AsyncClient:
        self.created += 1
        return new_client(transport=self.transport)

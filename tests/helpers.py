"""Builders and fakes shared by the unit and property tests."""

from __future__ import annotations

import asyncio

from proxytester.models.endpoint import Endpoint, ProxyCredentials


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_endpoint(endpoint_id: int = 1, **overrides: object) -> Endpoint:
    """Build a testable SOCKS5 endpoint; override any field."""
    data: dict = {
        "id": endpoint_id,
        "ip": f"198.51.100.{endpoint_id % 250 + 1}",
        "socks5_port": 1080,
    }
    data.update(overrides)
    return Endpoint.model_validate(data)


def http_response(
    body: bytes,
    status: int = 200,
    reason: str = "OK",
    content_length: int | None = None,
) -> bytes:
    """Serialize a minimal HTTP/1.1 response."""
    length = len(body) if content_length is None else content_length
    head = (
        f"HTTP/1.1 {status} {reason}\r\n"
        f"Content-Length: {length}\r\n"
        "Content-Type: text/plain\r\n"
        "\r\n"
    ).encode("ascii")
    return head + body


# ---------------------------------------------------------------------------
# Tunnel fakes
# ---------------------------------------------------------------------------

class FakeTunnel:
    """In-memory stand-in for a SOCKS5 tunnel.

    ``chunks`` are returned by successive ``receive`` calls, then EOF. A
    chunk that is an exception instance is raised instead of returned.
    """

    def __init__(
        self,
        *chunks: bytes | BaseException,
        tls_error: BaseException | None = None,
        receive_delay: float = 0.0,
        on_close=None,  # noqa: ANN001
    ) -> None:
        self._chunks = list(chunks)
        self._tls_error = tls_error
        self._receive_delay = receive_delay
        self._on_close = on_close
        self.sent = bytearray()
        self.tls_host: str | None = None
        self.closed = False

    async def start_tls(self, server_hostname: str, ssl_context=None) -> None:  # noqa: ANN001
        if self._tls_error is not None:
            raise self._tls_error
        self.tls_host = server_hostname

    async def send(self, data: bytes) -> None:
        self.sent.extend(data)

    async def receive(self, max_bytes: int = 65536) -> bytes:
        if self._receive_delay:
            await asyncio.sleep(self._receive_delay)
        if not self._chunks:
            return b""
        chunk = self._chunks.pop(0)
        if isinstance(chunk, BaseException):
            raise chunk
        return chunk

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close()

    async def __aenter__(self) -> "FakeTunnel":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class FakeConnector:
    """Connector returning pre-built tunnels (or raising) and recording calls.

    Tracks how many tunnels are open at once in ``max_open``.
    """

    def __init__(self, *outcomes, connect_delay: float = 0.0) -> None:  # noqa: ANN002
        self._outcomes = list(outcomes)
        self._connect_delay = connect_delay
        self.calls: list[dict] = []
        self.open = 0
        self.max_open = 0

    def _closed(self) -> None:
        self.open -= 1

    async def connect(
        self,
        proxy_host: str,
        proxy_port: int,
        dest_host: str,
        dest_port: int,
        credentials: ProxyCredentials | None = None,
        timeout: float | None = None,
    ):
        self.calls.append(
            {
                "proxy_host": proxy_host,
                "proxy_port": proxy_port,
                "dest_host": dest_host,
                "dest_port": dest_port,
                "credentials": credentials,
                "timeout": timeout,
            }
        )
        if self._connect_delay:
            await asyncio.sleep(self._connect_delay)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        self.open += 1
        self.max_open = max(self.max_open, self.open)
        outcome._on_close = self._closed
        return outcome


def fixed_clock(*values: float):
    """Clock returning *values* in order."""
    return iter(values).__next__



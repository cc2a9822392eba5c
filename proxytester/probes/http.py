"""Minimal HTTP/1.1 GET over an already-open tunnel.

Framing is handled by ``h11``; this module only moves bytes between the
tunnel and the h11 state machine. One request per tunnel, ``Connection:
close``. Framing errors surface as ``h11.RemoteProtocolError`` and socket
errors as ``OSError``; callers decide how to classify them.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

import h11

from proxytester.tunnel.socks5 import Tunnel

_READ_SIZE = 65536


@dataclass
class HttpResponse:
    """Status plus body (body is empty when streamed to a callback)."""

    status_code: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


async def http_get(
    tunnel: Tunnel,
    host: str,
    path: str,
    *,
    user_agent: str,
    on_data: Callable[[bytes], None] | None = None,
    read_timeout: float | None = None,
) -> HttpResponse:
    """Send ``GET path`` to *host* over *tunnel* and read the full response.

    When *on_data* is given every body chunk is passed to it as it arrives
    instead of being buffered. *read_timeout* bounds each individual read,
    not the whole exchange, and raises ``asyncio.TimeoutError`` when the
    tunnel stays idle that long.
    """
    conn = h11.Connection(our_role=h11.CLIENT)
    request = h11.Request(
        method="GET",
        target=path,
        headers=[
            ("Host", host),
            ("User-Agent", user_agent),
            ("Accept", "*/*"),
            ("Connection", "close"),
        ],
    )
    await tunnel.send(conn.send(request) + (conn.send(h11.EndOfMessage()) or b""))

    status_code: int | None = None
    chunks: list[bytes] = []

    while True:
        event = conn.next_event()
        if event is h11.NEED_DATA:
            data = await asyncio.wait_for(tunnel.receive(_READ_SIZE), timeout=read_timeout)
            conn.receive_data(data)
            continue
        if isinstance(event, h11.Response):
            status_code = event.status_code
        elif isinstance(event, h11.Data):
            if on_data is not None:
                on_data(bytes(event.data))
            else:
                chunks.append(bytes(event.data))
        elif isinstance(event, (h11.EndOfMessage, h11.ConnectionClosed)):
            break

    if status_code is None:
        raise h11.RemoteProtocolError("Connection closed before a response arrived")
    return HttpResponse(status_code=status_code, body=b"".join(chunks))

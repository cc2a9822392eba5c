"""SOCKS5 tunnel establishment over asyncio streams.

Implements the client side of RFC 1928 (method negotiation + CONNECT) and
RFC 1929 (username/password sub-negotiation). A successful ``connect`` returns
a :class:`Tunnel` whose bytes are relayed by the proxy to the destination;
callers upgrade it to TLS with :meth:`Tunnel.start_tls` before speaking HTTP.

Every failure is raised as ``ProxyConnectionError`` carrying one of the
``ConnectionFailureReason`` values. There are no retries: one call, one
attempt, one socket.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import ssl
import struct

from proxytester.middleware.error_handler import (
    ConnectionFailureReason,
    ProxyConnectionError,
)
from proxytester.models.endpoint import ProxyCredentials

logger = logging.getLogger(__name__)

SOCKS_VERSION = 0x05
AUTH_VERSION = 0x01

METHOD_NO_AUTH = 0x00
METHOD_USERNAME_PASSWORD = 0x02
METHOD_NO_ACCEPTABLE = 0xFF

CMD_CONNECT = 0x01

ATYP_IPV4 = 0x01
ATYP_DOMAIN = 0x03
ATYP_IPV6 = 0x04

# Reply codes that mean the proxy could not reach the destination
_REFUSED_REPLIES: dict[int, str] = {
    0x03: "network unreachable",
    0x04: "host unreachable",
    0x05: "connection refused by destination",
}

_REPLY_MESSAGES: dict[int, str] = {
    0x01: "general SOCKS server failure",
    0x02: "connection not allowed by ruleset",
    0x06: "TTL expired",
    0x07: "command not supported",
    0x08: "address type not supported",
    **_REFUSED_REPLIES,
}


class Tunnel:
    """Duplex byte stream relayed through a SOCKS5 proxy."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        bind_host: str = "",
        bind_port: int = 0,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self.bind_host = bind_host
        self.bind_port = bind_port
        self._closed = False

    async def start_tls(
        self,
        server_hostname: str,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        """Upgrade the tunnel to TLS in place (SNI + certificate checks)."""
        context = ssl_context or ssl.create_default_context()
        await self._writer.start_tls(context, server_hostname=server_hostname)

    async def send(self, data: bytes) -> None:
        if not data:
            return
        self._writer.write(data)
        await self._writer.drain()

    async def receive(self, max_bytes: int = 65536) -> bytes:
        """Read up to *max_bytes*; ``b""`` signals EOF."""
        return await self._reader.read(max_bytes)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ssl.SSLError):
            # Peer already gone; the transport is closed either way
            pass

    async def __aenter__(self) -> "Tunnel":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def encode_address(host: str) -> bytes:
    """Encode a destination as ATYP + DST.ADDR.

    IP literals are sent as such; hostnames are sent as a domain so that
    the proxy resolves them.
    """
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        try:
            raw = host.encode("idna")
        except UnicodeError:
            raw = b""
        if not raw or len(raw) > 255:
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"Destination hostname is not encodable: {host!r}",
            ) from None
        return bytes([ATYP_DOMAIN, len(raw)]) + raw

    if addr.version == 4:
        return bytes([ATYP_IPV4]) + addr.packed
    return bytes([ATYP_IPV6]) + addr.packed


def build_auth_request(credentials: ProxyCredentials) -> bytes:
    """Build the RFC 1929 username/password request."""
    username = credentials.username.encode("utf-8")
    password = credentials.password.encode("utf-8")
    if not 1 <= len(username) <= 255 or len(password) > 255:
        raise ProxyConnectionError(
            ConnectionFailureReason.PROTOCOL_ERROR,
            "SOCKS5 credentials must be at most 255 bytes each",
        )
    return (
        bytes([AUTH_VERSION, len(username)])
        + username
        + bytes([len(password)])
        + password
    )


class TunnelConnector:
    """Opens SOCKS5 tunnels to a destination through a single proxy."""

    def __init__(self, default_timeout: float = 30.0) -> None:
        self._default_timeout = default_timeout

    async def connect(
        self,
        proxy_host: str,
        proxy_port: int,
        dest_host: str,
        dest_port: int,
        credentials: ProxyCredentials | None = None,
        timeout: float | None = None,
    ) -> Tunnel:
        """Open a tunnel to ``dest_host:dest_port`` via ``proxy_host:proxy_port``.

        The TCP connect and the whole handshake share one deadline. On expiry
        the socket is closed and ``ProxyConnectionError(timeout)`` is raised.
        """
        deadline = self._default_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(
                self._open(proxy_host, proxy_port, dest_host, dest_port, credentials),
                timeout=deadline,
            )
        except asyncio.TimeoutError:
            logger.debug(
                "SOCKS5 handshake timed out",
                extra={"proxy_host": proxy_host, "error_reason": "timeout"},
            )
            raise ProxyConnectionError(
                ConnectionFailureReason.TIMEOUT,
                f"Connection timeout after {deadline:g}s",
            ) from None

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def _open(
        self,
        proxy_host: str,
        proxy_port: int,
        dest_host: str,
        dest_port: int,
        credentials: ProxyCredentials | None,
    ) -> Tunnel:
        try:
            reader, writer = await asyncio.open_connection(proxy_host, proxy_port)
        except OSError as exc:
            reason = (
                ConnectionFailureReason.TIMEOUT
                if isinstance(exc, TimeoutError)
                else ConnectionFailureReason.REFUSED
            )
            raise ProxyConnectionError(
                reason,
                f"Cannot connect to proxy {proxy_host}:{proxy_port}: {exc}",
            ) from exc

        try:
            await self._negotiate(reader, writer, credentials)
            bind_host, bind_port = await self._request_connect(
                reader, writer, dest_host, dest_port
            )
        except asyncio.IncompleteReadError as exc:
            writer.close()
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                "Proxy closed the connection during the SOCKS5 handshake",
            ) from exc
        except OSError as exc:
            writer.close()
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"Socket error during SOCKS5 handshake: {exc}",
            ) from exc
        except BaseException:
            # ProxyConnectionError, or cancellation from the deadline
            writer.close()
            raise

        return Tunnel(reader, writer, bind_host=bind_host, bind_port=bind_port)

    async def _negotiate(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        credentials: ProxyCredentials | None,
    ) -> None:
        methods = [METHOD_NO_AUTH]
        if credentials is not None:
            methods.append(METHOD_USERNAME_PASSWORD)

        writer.write(bytes([SOCKS_VERSION, len(methods), *methods]))
        await writer.drain()

        version, method = await reader.readexactly(2)
        if version != SOCKS_VERSION:
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"Not a SOCKS5 proxy (version byte {version:#04x})",
            )

        if method == METHOD_NO_AUTH:
            return
        if method == METHOD_NO_ACCEPTABLE:
            raise ProxyConnectionError(
                ConnectionFailureReason.AUTH_REJECTED,
                "Proxy accepted none of the offered authentication methods",
            )
        if method != METHOD_USERNAME_PASSWORD:
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"Proxy selected unsupported method {method:#04x}",
            )
        if credentials is None:
            raise ProxyConnectionError(
                ConnectionFailureReason.AUTH_REJECTED,
                "Proxy requires username/password authentication",
            )

        writer.write(build_auth_request(credentials))
        await writer.drain()

        _auth_version, status = await reader.readexactly(2)
        if status != 0x00:
            raise ProxyConnectionError(
                ConnectionFailureReason.AUTH_REJECTED,
                "Proxy rejected the supplied credentials",
            )

    async def _request_connect(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        dest_host: str,
        dest_port: int,
    ) -> tuple[str, int]:
        request = (
            bytes([SOCKS_VERSION, CMD_CONNECT, 0x00])
            + encode_address(dest_host)
            + struct.pack(">H", dest_port)
        )
        writer.write(request)
        await writer.drain()

        version, reply, _rsv, atyp = await reader.readexactly(4)
        if version != SOCKS_VERSION:
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"Invalid CONNECT reply version {version:#04x}",
            )
        if reply != 0x00:
            reason = (
                ConnectionFailureReason.REFUSED
                if reply in _REFUSED_REPLIES
                else ConnectionFailureReason.PROTOCOL_ERROR
            )
            detail = _REPLY_MESSAGES.get(reply, f"unknown reply code {reply:#04x}")
            raise ProxyConnectionError(reason, f"SOCKS5 CONNECT failed: {detail}")

        if atyp == ATYP_IPV4:
            bind_host = str(ipaddress.IPv4Address(await reader.readexactly(4)))
        elif atyp == ATYP_IPV6:
            bind_host = str(ipaddress.IPv6Address(await reader.readexactly(16)))
        elif atyp == ATYP_DOMAIN:
            (length,) = await reader.readexactly(1)
            bind_host = (await reader.readexactly(length)).decode("ascii", "replace")
        else:
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"Unknown bind address type {atyp:#04x}",
            )
        (bind_port,) = struct.unpack(">H", await reader.readexactly(2))
        return bind_host, bind_port

"""Throughput probe: download a reference file over TLS through the proxy.

Uses its own tunnel, never the one opened by the connectivity probe.
Throughput is bytes received over wall-clock time since tunnel-open start:

    throughput_kbps = bytes * 8 / (elapsed_seconds * 1024)

rounded half-up to an integer. An interrupted download yields 0 instead of
an error; failing to open the tunnel or a read timeout is an error.
"""

from __future__ import annotations

import asyncio
import logging
import math
import ssl
import time
from dataclasses import dataclass
from typing import Callable

import h11

from proxytester.middleware.error_handler import (
    ConfigurationError,
    ConnectionFailureReason,
    ProxyConnectionError,
    ThroughputError,
)
from proxytester.models.endpoint import Endpoint
from proxytester.probes.http import http_get
from proxytester.tunnel.socks5 import Tunnel, TunnelConnector

logger = logging.getLogger(__name__)


def compute_throughput_kbps(bytes_received: int, elapsed_seconds: float) -> int:
    """Convert a byte count over an interval to kbps; 0 for a non-positive interval."""
    if elapsed_seconds <= 0:
        return 0
    return math.floor(bytes_received * 8 / (elapsed_seconds * 1024) + 0.5)


@dataclass
class ThroughputResult:
    throughput_kbps: int
    bytes_received: int
    elapsed_seconds: float


class ThroughputProbe:
    """Measures effective download bitrate through a proxy."""

    def __init__(
        self,
        connector: TunnelConnector,
        *,
        host: str = "proof.ovh.net",
        port: int = 443,
        path: str = "/files/100Kb.dat",
        connect_timeout_seconds: float = 30.0,
        read_timeout_seconds: float = 20.0,
        user_agent: str = "ProxyTester/1.0",
        ssl_context: ssl.SSLContext | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._connector = connector
        self._host = host
        self._port = port
        self._path = path
        self._connect_timeout = connect_timeout_seconds
        self._read_timeout = read_timeout_seconds
        self._user_agent = user_agent
        self._ssl_context = ssl_context
        self._clock = clock

    async def probe(self, endpoint: Endpoint) -> ThroughputResult:
        proxy_port = endpoint.tunnel_port
        if proxy_port is None:
            raise ConfigurationError()

        started = self._clock()
        try:
            tunnel = await asyncio.wait_for(
                self._open(endpoint, proxy_port), timeout=self._connect_timeout
            )
        except asyncio.TimeoutError:
            raise ProxyConnectionError(
                ConnectionFailureReason.TIMEOUT,
                f"Throughput tunnel timeout after {self._connect_timeout:g}s",
            ) from None

        received = 0

        def _count(chunk: bytes) -> None:
            nonlocal received
            received += len(chunk)

        async with tunnel:
            try:
                response = await http_get(
                    tunnel,
                    self._host,
                    self._path,
                    user_agent=self._user_agent,
                    on_data=_count,
                    read_timeout=self._read_timeout,
                )
            except asyncio.TimeoutError:
                raise ProxyConnectionError(
                    ConnectionFailureReason.TIMEOUT,
                    f"Download stalled for {self._read_timeout:g}s",
                ) from None
            except (h11.ProtocolError, OSError) as exc:
                elapsed = self._clock() - started
                logger.info(
                    "Download from %s interrupted after %d bytes: %s",
                    self._host,
                    received,
                    exc,
                    extra={"endpoint_id": endpoint.id},
                )
                return ThroughputResult(
                    throughput_kbps=0, bytes_received=received, elapsed_seconds=elapsed
                )
            elapsed = self._clock() - started

        if not response.ok:
            raise ThroughputError(
                f"Reference file returned HTTP {response.status_code}",
                status=response.status_code,
            )

        return ThroughputResult(
            throughput_kbps=compute_throughput_kbps(received, elapsed),
            bytes_received=received,
            elapsed_seconds=elapsed,
        )

    async def _open(self, endpoint: Endpoint, proxy_port: int) -> Tunnel:
        tunnel = await self._connector.connect(
            endpoint.host,
            proxy_port,
            self._host,
            self._port,
            credentials=endpoint.credentials,
            timeout=self._connect_timeout,
        )
        try:
            await tunnel.start_tls(self._host, self._ssl_context)
        except OSError as exc:
            await tunnel.aclose()
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"TLS handshake with {self._host} failed: {exc}",
            ) from exc
        except BaseException:
            await tunnel.aclose()
            raise
        return tunnel

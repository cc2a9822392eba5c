"""Connectivity probe: reach an IP-echo service over TLS through the proxy.

Latency is one wall-clock number covering tunnel setup, TLS handshake and
a single request/response round-trip; it is not decomposed into phases.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import ssl
import time
from dataclasses import dataclass
from typing import Callable

import h11

from proxytester.middleware.error_handler import (
    ConfigurationError,
    ConnectionFailureReason,
    ProxyConnectionError,
)
from proxytester.models.endpoint import Endpoint
from proxytester.probes.http import http_get
from proxytester.tunnel.socks5 import TunnelConnector

logger = logging.getLogger(__name__)


@dataclass
class ConnectivityResult:
    latency_ms: int
    external_ip: str


class ConnectivityProbe:
    """Measures reachability, latency and the proxy's external IP."""

    def __init__(
        self,
        connector: TunnelConnector,
        *,
        host: str = "ipv4.icanhazip.com",
        port: int = 443,
        path: str = "/",
        timeout_seconds: float = 30.0,
        user_agent: str = "ProxyTester/1.0",
        ssl_context: ssl.SSLContext | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._connector = connector
        self._host = host
        self._port = port
        self._path = path
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._ssl_context = ssl_context
        self._clock = clock

    async def probe(self, endpoint: Endpoint) -> ConnectivityResult:
        """Probe *endpoint*; raises ``ProxyConnectionError`` on any failure."""
        proxy_port = endpoint.tunnel_port
        if proxy_port is None:
            raise ConfigurationError()

        try:
            return await asyncio.wait_for(
                self._probe(endpoint, proxy_port), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            raise ProxyConnectionError(
                ConnectionFailureReason.TIMEOUT,
                f"Connection timeout after {self._timeout:g}s",
            ) from None

    async def _probe(self, endpoint: Endpoint, proxy_port: int) -> ConnectivityResult:
        started = self._clock()
        tunnel = await self._connector.connect(
            endpoint.host,
            proxy_port,
            self._host,
            self._port,
            credentials=endpoint.credentials,
            timeout=self._timeout,
        )
        async with tunnel:
            try:
                await tunnel.start_tls(self._host, self._ssl_context)
                response = await http_get(
                    tunnel, self._host, self._path, user_agent=self._user_agent
                )
            except ssl.SSLError as exc:
                raise ProxyConnectionError(
                    ConnectionFailureReason.PROTOCOL_ERROR,
                    f"TLS handshake with {self._host} failed: {exc}",
                ) from exc
            except h11.ProtocolError as exc:
                raise ProxyConnectionError(
                    ConnectionFailureReason.PROTOCOL_ERROR,
                    f"Malformed HTTP response from {self._host}: {exc}",
                ) from exc
            except OSError as exc:
                raise ProxyConnectionError(
                    ConnectionFailureReason.PROTOCOL_ERROR,
                    f"Tunnel to {self._host} dropped: {exc}",
                ) from exc
            latency_ms = round((self._clock() - started) * 1000)

        if not response.ok:
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"IP echo service returned HTTP {response.status_code}",
            )

        text = response.body.decode("ascii", "replace").strip()
        try:
            external_ip = str(ipaddress.ip_address(text))
        except ValueError:
            raise ProxyConnectionError(
                ConnectionFailureReason.PROTOCOL_ERROR,
                f"IP echo service returned an unexpected body: {text[:64]!r}",
            ) from None

        logger.debug(
            "Connectivity probe succeeded for %s:%d",
            endpoint.host,
            proxy_port,
            extra={"endpoint_id": endpoint.id, "latency_ms": latency_ms},
        )
        return ConnectivityResult(latency_ms=latency_ms, external_ip=external_ip)

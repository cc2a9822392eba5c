"""Endpoint tester: runs the two-step test for a single proxy endpoint.

Pre-check → connectivity probe → (only on success) throughput probe. The
outcome is always a TestResult; nothing escapes ``run`` except caller
cancellation, so one endpoint's fault can never take down its siblings in a
batch.
"""

from __future__ import annotations

import logging
import time

from proxytester.middleware.error_handler import (
    ConfigurationError,
    ProbeError,
    ProxyConnectionError,
)
from proxytester.models.endpoint import Endpoint
from proxytester.models.results import ErrorKind, TestResult, utc_now
from proxytester.probes.connectivity import ConnectivityProbe
from proxytester.probes.throughput import ThroughputProbe

logger = logging.getLogger(__name__)


def not_attempted_result(
    endpoint_id: int, host: str, message: str, port: int = 0
) -> TestResult:
    """Result for an endpoint that was never probed."""
    return TestResult(
        endpoint_id=endpoint_id,
        host=host,
        port=port,
        reachable=False,
        error_kind=ErrorKind.CONFIGURATION,
        error_message=message,
        attempted=False,
    )


def internal_error_result(endpoint: Endpoint, exc: BaseException) -> TestResult:
    """Result for an endpoint whose test crashed unexpectedly."""
    return TestResult(
        endpoint_id=endpoint.id,
        host=endpoint.host,
        port=endpoint.tunnel_port or 0,
        reachable=False,
        error_kind=ErrorKind.INTERNAL,
        error_message=f"Internal error: {type(exc).__name__}: {exc}",
    )


def _error_kind(exc: ProbeError) -> ErrorKind:
    if isinstance(exc, ProxyConnectionError):
        return ErrorKind(exc.reason.value)
    return ErrorKind.PROTOCOL_ERROR


class EndpointTester:
    """Tests one endpoint and reports the outcome as a TestResult."""

    def __init__(
        self,
        connectivity_probe: ConnectivityProbe,
        throughput_probe: ThroughputProbe,
    ) -> None:
        self._connectivity = connectivity_probe
        self._throughput = throughput_probe

    async def run(self, endpoint: Endpoint) -> TestResult:
        tested_at = utc_now()
        port = endpoint.tunnel_port
        if port is None:
            logger.info(
                "Endpoint %s skipped: %s",
                endpoint.id,
                ConfigurationError.message,
                extra={"endpoint_id": endpoint.id, "error_reason": "configuration"},
            )
            return not_attempted_result(
                endpoint.id, endpoint.host, ConfigurationError.message
            )

        started = time.monotonic()
        fields: dict = {
            "endpoint_id": endpoint.id,
            "host": endpoint.host,
            "port": port,
            "tested_at": tested_at,
        }

        try:
            connectivity = await self._connectivity.probe(endpoint)
        except ProbeError as exc:
            logger.info(
                "Endpoint %s unreachable: %s",
                endpoint.id,
                exc,
                extra={
                    "endpoint_id": endpoint.id,
                    "proxy_host": endpoint.host,
                    "error_reason": str(exc),
                },
            )
            return TestResult(
                **fields,
                reachable=False,
                error_kind=_error_kind(exc),
                error_message=str(exc),
            )
        except Exception as exc:
            logger.exception(
                "Connectivity test for endpoint %s crashed",
                endpoint.id,
                extra={"endpoint_id": endpoint.id, "proxy_host": endpoint.host},
            )
            return internal_error_result(endpoint, exc).model_copy(
                update={"tested_at": tested_at}
            )

        fields.update(
            reachable=True,
            latency_ms=connectivity.latency_ms,
            external_ip=connectivity.external_ip,
        )

        try:
            throughput = await self._throughput.probe(endpoint)
        except Exception as exc:
            # Reachability stands; only the throughput figure is missing
            logger.warning(
                "Throughput test failed for reachable endpoint %s: %s",
                endpoint.id,
                exc,
                exc_info=not isinstance(exc, ProbeError),
                extra={"endpoint_id": endpoint.id, "error_reason": str(exc)},
            )
            return TestResult(
                **fields,
                error_kind=(
                    ErrorKind.THROUGHPUT
                    if isinstance(exc, ProbeError)
                    else ErrorKind.INTERNAL
                ),
                error_message=f"Throughput test failed: {exc}",
            )

        logger.info(
            "Endpoint %s reachable (latency=%dms, throughput=%dkbps)",
            endpoint.id,
            connectivity.latency_ms,
            throughput.throughput_kbps,
            extra={
                "endpoint_id": endpoint.id,
                "latency_ms": connectivity.latency_ms,
                "throughput_kbps": throughput.throughput_kbps,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return TestResult(**fields, throughput_kbps=throughput.throughput_kbps)

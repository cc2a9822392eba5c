"""Global error hierarchy and FastAPI exception handlers.

All proxy-tester errors extend ProxyTesterError. Request-level errors are
mapped by the FastAPI exception handlers (together with Pydantic's
RequestValidationError and unhandled exceptions) to a consistent JSON
envelope: { success, data, error, meta }.

Per-endpoint errors (ConfigurationError, ProbeError and its subclasses) are
captured into that endpoint's TestResult and never reach the HTTP layer.
"""

from __future__ import annotations

import logging
import traceback
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from proxytester.models.responses import ApiResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class ProxyTesterError(Exception):
    """Base error for all proxy-tester errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ValidationError(ProxyTesterError):
    """Pydantic / payload validation failures, with field-level details."""

    status_code = 422
    message = "Validation error"


class InvalidRequestError(ProxyTesterError):
    """Malformed test request (empty id list, bad window size)."""

    status_code = 400
    message = "Invalid request"


class NoTestableEndpointsError(ProxyTesterError):
    """None of the requested endpoints exist in the inventory."""

    status_code = 404
    message = "No testable proxy endpoints found"


class InventoryUnavailableError(ProxyTesterError):
    """Reading the endpoint inventory failed."""

    status_code = 502
    message = "Endpoint inventory unavailable"


class PersistenceError(ProxyTesterError):
    """Writing an audit row or an endpoint status update failed."""

    status_code = 500
    message = "Failed to persist test outcome"


class ConfigurationError(ProxyTesterError):
    """Endpoint cannot be tested as configured (e.g. no SOCKS5 port)."""

    status_code = 400
    message = "No SOCKS5 port configured"


class ConnectionFailureReason(str, Enum):
    """Why a tunnel or probe connection failed."""

    REFUSED = "refused"
    TIMEOUT = "timeout"
    AUTH_REJECTED = "auth_rejected"
    PROTOCOL_ERROR = "protocol_error"


class ProbeError(ProxyTesterError):
    """Base for failures raised while probing through a proxy."""

    status_code = 502
    message = "Probe failed"


class ProxyConnectionError(ProbeError):
    """Tunnel handshake or I/O failure; carries a ConnectionFailureReason."""

    message = "Proxy connection failed"

    def __init__(
        self,
        reason: ConnectionFailureReason,
        message: str | None = None,
        **kwargs: object,
    ) -> None:
        self.reason = reason
        super().__init__(message, reason=reason.value, **kwargs)

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.message}"


class ThroughputError(ProbeError):
    """Throughput measurement failed after the tunnel was opened."""

    message = "Throughput test failed"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.fail(error, meta=meta).model_dump(),
    )


async def _proxy_tester_error_handler(
    _request: Request, exc: ProxyTesterError
) -> JSONResponse:
    """Handle ProxyTesterError subclasses."""
    meta = exc.details if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: log traceback, return generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


# ---------------------------------------------------------------------------
# Registration helper
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(ProxyTesterError, _proxy_tester_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]

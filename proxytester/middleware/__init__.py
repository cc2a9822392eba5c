"""Middleware package: error hierarchy and request ID."""

from proxytester.middleware.error_handler import (
    ConfigurationError,
    ConnectionFailureReason,
    InvalidRequestError,
    InventoryUnavailableError,
    NoTestableEndpointsError,
    PersistenceError,
    ProbeError,
    ProxyConnectionError,
    ProxyTesterError,
    ThroughputError,
    ValidationError,
    register_error_handlers,
)
from proxytester.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ConfigurationError",
    "ConnectionFailureReason",
    "InvalidRequestError",
    "InventoryUnavailableError",
    "NoTestableEndpointsError",
    "PersistenceError",
    "ProbeError",
    "ProxyConnectionError",
    "ProxyTesterError",
    "RequestIdMiddleware",
    "ThroughputError",
    "ValidationError",
    "register_error_handlers",
]

"""Public models for the proxy tester service."""

from proxytester.models.endpoint import (
    Endpoint,
    EndpointStatus,
    ProxyCredentials,
    StatusUpdate,
)
from proxytester.models.requests import ProxyTestRequest
from proxytester.models.responses import ApiResponse
from proxytester.models.results import (
    ErrorKind,
    ReconcileOutcome,
    RunSummary,
    TestResult,
)

__all__ = [
    "ApiResponse",
    "Endpoint",
    "EndpointStatus",
    "ErrorKind",
    "ProxyCredentials",
    "ProxyTestRequest",
    "ReconcileOutcome",
    "RunSummary",
    "StatusUpdate",
    "TestResult",
]

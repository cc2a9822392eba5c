"""Test outcome models: per-endpoint results and run-level summaries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ErrorKind(str, Enum):
    """Classification attached to a failed or partially failed result."""

    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    REFUSED = "refused"
    AUTH_REJECTED = "auth_rejected"
    PROTOCOL_ERROR = "protocol_error"
    THROUGHPUT = "throughput"
    INTERNAL = "internal"


class TestResult(BaseModel):
    """One measurement outcome for one endpoint. Immutable once created.

    ``attempted`` is False when the endpoint was never probed (no SOCKS5
    port, or unknown to the inventory); such results are audited but never
    change the endpoint's stored status.
    """

    __test__: ClassVar[bool] = False

    model_config = ConfigDict(frozen=True)

    endpoint_id: int
    host: str
    port: int
    reachable: bool
    latency_ms: int | None = None
    throughput_kbps: int | None = None
    external_ip: str | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    attempted: bool = True
    tested_at: datetime = Field(default_factory=utc_now)


@dataclass
class ReconcileOutcome:
    """Counts produced by a reconciliation pass."""

    persisted: int = 0
    status_updates: int = 0
    failures: int = 0


class RunSummary(BaseModel):
    """Aggregate response for a targeted run or a scan."""

    total_tested: int
    reachable: int
    unreachable: int
    persisted: int
    status_updates: int
    results: list[TestResult]

    @classmethod
    def build(
        cls, results: list[TestResult], outcome: ReconcileOutcome
    ) -> "RunSummary":
        reachable = sum(1 for r in results if r.reachable)
        return cls(
            total_tested=len(results),
            reachable=reachable,
            unreachable=len(results) - reachable,
            persisted=outcome.persisted,
            status_updates=outcome.status_updates,
            results=results,
        )

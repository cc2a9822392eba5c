"""Unit tests for result reconciliation."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from proxytester.integration.stores import InMemoryAuditLog, InMemoryInventory
from proxytester.middleware.error_handler import PersistenceError
from proxytester.models.endpoint import EndpointStatus
from proxytester.models.results import ErrorKind, TestResult
from proxytester.services.reconciler import ResultReconciler, status_update_for
from tests.helpers import make_endpoint

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
EARLIER = datetime(2026, 10, 1, 8, 30, tzinfo=timezone.utc)


def _reachable(endpoint_id: int = 1, **overrides) -> TestResult:
    data = dict(
        endpoint_id=endpoint_id,
        host="198.51.100.2",
        port=1080,
        reachable=True,
        latency_ms=45,
        external_ip="203.0.113.9",
        throughput_kbps=812,
    )
    data.update(overrides)
    return TestResult(**data)


def _unreachable(endpoint_id: int = 1) -> TestResult:
    return TestResult(
        endpoint_id=endpoint_id,
        host="198.51.100.2",
        port=1080,
        reachable=False,
        error_kind=ErrorKind.TIMEOUT,
        error_message="timeout: Connection timeout after 30s",
    )


def _not_attempted(endpoint_id: int = 1) -> TestResult:
    return TestResult(
        endpoint_id=endpoint_id,
        host="198.51.100.2",
        port=0,
        reachable=False,
        error_kind=ErrorKind.CONFIGURATION,
        error_message="No SOCKS5 port configured",
        attempted=False,
    )


def _previously_active(endpoint_id: int = 1):
    return make_endpoint(
        endpoint_id,
        status="active",
        last_ip="203.0.113.1",
        last_latency_ms=80,
        last_speed_kbps=500,
        last_tested_at=EARLIER,
    )


def _reconciler(inventory, audit=None) -> ResultReconciler:
    return ResultReconciler(
        inventory=inventory, audit=audit or InMemoryAuditLog(), clock=lambda: NOW
    )


class TestStatusUpdateFor:
    """Test status_update_for()."""

    def test_reachable_sets_all_measurements(self) -> None:
        """A reachable result records status, latency, speed and IP."""
        update = status_update_for(_reachable(), NOW)
        assert update.to_row() == {
            "status": "active",
            "last_ip": "203.0.113.9",
            "last_latency_ms": 45,
            "last_speed_kbps": 812,
            "last_tested_at": NOW.isoformat().replace("+00:00", "Z"),
        }

    def test_reachable_without_throughput_clears_speed(self) -> None:
        """A reachable result with no throughput stores no speed."""
        update = status_update_for(_reachable(throughput_kbps=None), NOW)
        row = update.to_row()
        assert "last_speed_kbps" in row
        assert row["last_speed_kbps"] is None

    def test_unreachable_only_sets_status_and_time(self) -> None:
        """An unreachable result only touches status and last_tested_at."""
        row = status_update_for(_unreachable(), NOW).to_row()
        assert set(row) == {"status", "last_tested_at"}
        assert row["status"] == "unreachable"


class TestReconcile:
    """Test ResultReconciler.reconcile()."""

    @pytest.mark.asyncio
    async def test_reachable_marks_active(self) -> None:
        """A reachable endpoint becomes active with its measurements."""
        inventory = InMemoryInventory([make_endpoint(1)])
        audit = InMemoryAuditLog()

        outcome = await _reconciler(inventory, audit).reconcile([_reachable(1)])

        stored = inventory.get(1)
        assert stored.status is EndpointStatus.ACTIVE
        assert stored.last_ip == "203.0.113.9"
        assert stored.last_latency_ms == 45
        assert stored.last_speed_kbps == 812
        assert stored.last_tested_at == NOW
        assert outcome.persisted == 1
        assert outcome.status_updates == 1
        assert outcome.failures == 0
        assert len(audit.results) == 1

    @pytest.mark.asyncio
    async def test_unreachable_keeps_previous_measurements(self) -> None:
        """Previous latency and IP survive a failed test."""
        inventory = InMemoryInventory([_previously_active(1)])

        await _reconciler(inventory).reconcile([_unreachable(1)])

        stored = inventory.get(1)
        assert stored.status is EndpointStatus.UNREACHABLE
        assert stored.last_ip == "203.0.113.1"
        assert stored.last_latency_ms == 80
        assert stored.last_speed_kbps == 500
        assert stored.last_tested_at == NOW

    @pytest.mark.asyncio
    async def test_not_attempted_is_audited_but_status_unchanged(self) -> None:
        """Not-attempted results are audited without touching status."""
        before = _previously_active(1)
        inventory = InMemoryInventory([before])
        audit = InMemoryAuditLog()

        outcome = await _reconciler(inventory, audit).reconcile([_not_attempted(1)])

        assert inventory.get(1) == before
        assert outcome.persisted == 1
        assert outcome.status_updates == 0
        assert audit.results[0].attempted is False

    @pytest.mark.asyncio
    async def test_audit_failure_is_isolated(self) -> None:
        """A failed audit write does not block other endpoints."""
        inventory = InMemoryInventory([make_endpoint(1), make_endpoint(2)])
        audit = MagicMock()
        audit.append_test_result = AsyncMock(
            side_effect=[PersistenceError("insert failed"), None]
        )

        outcome = await _reconciler(inventory, audit).reconcile(
            [_reachable(1), _reachable(2)]
        )

        assert outcome.persisted == 1
        assert outcome.failures == 1
        # Status is still reconciled for the item whose audit write failed
        assert outcome.status_updates == 2
        assert inventory.get(1).status is EndpointStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_status_failure_is_isolated(self) -> None:
        """A failed status write does not block other endpoints."""
        inventory = MagicMock()
        inventory.update_endpoint_status = AsyncMock(
            side_effect=[RuntimeError("db down"), None, None]
        )

        outcome = await _reconciler(inventory).reconcile(
            [_reachable(1), _unreachable(2), _reachable(3)]
        )

        assert outcome.persisted == 3
        assert outcome.status_updates == 2
        assert outcome.failures == 1
        assert inventory.update_endpoint_status.await_count == 3

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent_on_final_state(self) -> None:
        """Reconciling the same results twice ends in the same state."""
        inventory = InMemoryInventory([make_endpoint(1)])
        reconciler = _reconciler(inventory)

        await reconciler.reconcile([_reachable(1)])
        first = inventory.get(1)
        await reconciler.reconcile([_reachable(1)])

        assert inventory.get(1) == first

    @pytest.mark.asyncio
    async def test_empty_results(self) -> None:
        outcome = await _reconciler(InMemoryInventory()).reconcile([])
        assert (outcome.persisted, outcome.status_updates, outcome.failures) == (0, 0, 0)

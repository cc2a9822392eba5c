"""Result reconciler: audit every result, then update endpoint status.

Status rules for attempted results:

- reachable   → ``active``; last IP, latency and throughput replaced; tested now
- unreachable → ``unreachable``; tested now; previous measurements kept

Results that were never attempted (no SOCKS5 port, unknown id) are audited
but leave the endpoint untouched. A failed write is logged and counted;
it never stops the remaining items.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from proxytester.integration.stores import AuditStore, InventoryStore
from proxytester.models.endpoint import EndpointStatus, StatusUpdate
from proxytester.models.results import ReconcileOutcome, TestResult, utc_now

logger = logging.getLogger(__name__)


def status_update_for(result: TestResult, now: datetime) -> StatusUpdate:
    """Build the inventory update implied by an attempted result."""
    if result.reachable:
        return StatusUpdate(
            status=EndpointStatus.ACTIVE,
            last_ip=result.external_ip,
            last_latency_ms=result.latency_ms,
            last_speed_kbps=result.throughput_kbps,
            last_tested_at=now,
        )
    return StatusUpdate(status=EndpointStatus.UNREACHABLE, last_tested_at=now)


class ResultReconciler:
    """Persists test results and reconciles endpoint status."""

    def __init__(
        self,
        *,
        inventory: InventoryStore,
        audit: AuditStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._inventory = inventory
        self._audit = audit
        self._clock = clock

    async def reconcile(self, results: list[TestResult]) -> ReconcileOutcome:
        outcome = ReconcileOutcome()

        for result in results:
            try:
                await self._audit.append_test_result(result)
                outcome.persisted += 1
            except Exception as exc:
                outcome.failures += 1
                logger.error(
                    "Failed to audit result for endpoint %s: %s",
                    result.endpoint_id,
                    exc,
                    extra={"endpoint_id": result.endpoint_id, "error_reason": str(exc)},
                )

            if not result.attempted:
                continue

            try:
                await self._inventory.update_endpoint_status(
                    result.endpoint_id, status_update_for(result, self._clock())
                )
                outcome.status_updates += 1
            except Exception as exc:
                outcome.failures += 1
                logger.error(
                    "Failed to update status of endpoint %s: %s",
                    result.endpoint_id,
                    exc,
                    extra={"endpoint_id": result.endpoint_id, "error_reason": str(exc)},
                )

        logger.info(
            "Reconciled %d results (persisted=%d, status_updates=%d, failures=%d)",
            len(results),
            outcome.persisted,
            outcome.status_updates,
            outcome.failures,
        )
        return outcome

"""Batch runner: windowed, bounded-concurrency execution of endpoint tests.

Endpoints are split into consecutive windows of at most ``window_size``.
All tests in a window run concurrently; the next window starts only after
the whole current window has finished, so at most ``window_size`` tunnels
are ever open at once. Results are collected by position, never by
completion order.
"""

from __future__ import annotations

import asyncio
import logging
import time

from proxytester.integration.stores import InventoryStore
from proxytester.models.endpoint import Endpoint
from proxytester.models.results import TestResult
from proxytester.services.endpoint_tester import (
    EndpointTester,
    internal_error_result,
    not_attempted_result,
)

logger = logging.getLogger(__name__)

ENDPOINT_NOT_FOUND = "Endpoint not found"


def partition(items: list, window_size: int) -> list[list]:
    """Split *items* into consecutive chunks of at most *window_size*."""
    if window_size < 1:
        raise ValueError("window_size must be a positive integer")
    return [items[i : i + window_size] for i in range(0, len(items), window_size)]


class BatchRunner:
    """Loads endpoints from the inventory and tests them window by window.

    Parameters
    ----------
    inventory:
        Endpoint inventory to load configurations from.
    tester:
        Per-endpoint tester.
    default_window_size:
        Window size used when the caller does not pass one.
    test_soft_deleted_explicit:
        When True, explicitly requested ids are tested even if soft-deleted.
        Scans always skip soft-deleted endpoints.
    """

    def __init__(
        self,
        *,
        inventory: InventoryStore,
        tester: EndpointTester,
        default_window_size: int = 5,
        test_soft_deleted_explicit: bool = False,
    ) -> None:
        self._inventory = inventory
        self._tester = tester
        self._default_window_size = default_window_size
        self._test_soft_deleted_explicit = test_soft_deleted_explicit

    @property
    def default_window_size(self) -> int:
        return self._default_window_size

    async def load(self, endpoint_ids: list[int]) -> dict[int, Endpoint]:
        """Fetch the requested endpoints, keyed by id."""
        if not endpoint_ids:
            return {}
        endpoints = await self._inventory.list_testable_endpoints(
            ids=list(endpoint_ids),
            exclude_soft_deleted=not self._test_soft_deleted_explicit,
        )
        return {ep.id: ep for ep in endpoints}

    async def run(
        self,
        endpoint_ids: list[int],
        window_size: int | None = None,
    ) -> list[TestResult]:
        """Test the given endpoints; one result per id, in input order."""
        size = self._default_window_size if window_size is None else window_size
        if size < 1:
            raise ValueError("window_size must be a positive integer")
        if not endpoint_ids:
            return []

        found = await self.load(endpoint_ids)
        return await self.run_loaded(endpoint_ids, found, size)

    async def run_all(
        self,
        limit: int | None = None,
        window_size: int | None = None,
    ) -> list[TestResult]:
        """Test every non-soft-deleted endpoint (capped by *limit*)."""
        size = self._default_window_size if window_size is None else window_size
        if size < 1:
            raise ValueError("window_size must be a positive integer")

        endpoints = await self._inventory.list_testable_endpoints(
            limit=limit, exclude_soft_deleted=True
        )
        return await self.run_loaded(
            [ep.id for ep in endpoints], {ep.id: ep for ep in endpoints}, size
        )

    async def run_loaded(
        self,
        endpoint_ids: list[int],
        endpoints: dict[int, Endpoint],
        window_size: int,
    ) -> list[TestResult]:
        """Run already-loaded endpoints; ids absent from *endpoints* are not attempted."""
        results: list[TestResult] = []
        windows = partition(list(endpoint_ids), window_size)
        started = time.monotonic()

        for index, window in enumerate(windows):
            window_results = await asyncio.gather(
                *(self._run_one(ep_id, endpoints.get(ep_id)) for ep_id in window),
                return_exceptions=True,
            )
            for ep_id, outcome in zip(window, window_results):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    # Tester contract broken; contain it to this slot
                    logger.error(
                        "Test for endpoint %s raised %r",
                        ep_id,
                        outcome,
                        extra={"endpoint_id": ep_id, "window_index": index},
                    )
                    endpoint = endpoints[ep_id]
                    outcome = internal_error_result(endpoint, outcome)
                results.append(outcome)

            logger.debug(
                "Window %d/%d finished (%d endpoints)",
                index + 1,
                len(windows),
                len(window),
                extra={"window_index": index},
            )

        logger.info(
            "Tested %d endpoints in %d windows of up to %d",
            len(results),
            len(windows),
            window_size,
            extra={"duration_ms": round((time.monotonic() - started) * 1000)},
        )
        return results

    async def _run_one(self, endpoint_id: int, endpoint: Endpoint | None) -> TestResult:
        if endpoint is None:
            return not_attempted_result(endpoint_id, "", ENDPOINT_NOT_FOUND)
        return await self._tester.run(endpoint)

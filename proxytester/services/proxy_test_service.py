"""Request-level orchestration for test runs.

Validates a run request, drives the batch runner, hands the results to the
reconciler and folds everything into a RunSummary. Only malformed requests
and inventory read failures surface as errors; every per-endpoint problem
is reported inside the summary.
"""

from __future__ import annotations

import logging

from proxytester.middleware.error_handler import (
    InvalidRequestError,
    NoTestableEndpointsError,
)
from proxytester.models.results import RunSummary
from proxytester.services.batch_runner import BatchRunner
from proxytester.services.reconciler import ResultReconciler

logger = logging.getLogger(__name__)


class ProxyTestService:
    """Runs targeted tests and inventory scans end to end."""

    def __init__(
        self,
        *,
        batch_runner: BatchRunner,
        reconciler: ResultReconciler,
        max_window_size: int = 50,
    ) -> None:
        self._runner = batch_runner
        self._reconciler = reconciler
        self._max_window_size = max_window_size

    def _window(self, window_size: int | None) -> int | None:
        if window_size is None:
            return None
        if window_size < 1:
            raise InvalidRequestError("window_size must be a positive integer")
        return min(window_size, self._max_window_size)

    async def run_targeted(
        self,
        endpoint_ids: list[int],
        window_size: int | None = None,
    ) -> RunSummary:
        """Test the given endpoints and reconcile the outcomes."""
        if not endpoint_ids:
            raise InvalidRequestError("endpoint_ids must be a non-empty list")
        window = self._window(window_size)

        found = await self._runner.load(endpoint_ids)
        if not found:
            raise NoTestableEndpointsError(
                "None of the requested endpoints were found",
                requested=len(endpoint_ids),
            )

        results = await self._runner.run_loaded(
            endpoint_ids, found, window or self._runner.default_window_size
        )
        outcome = await self._reconciler.reconcile(results)
        return RunSummary.build(results, outcome)

    async def run_scan(
        self,
        limit: int | None = None,
        window_size: int | None = None,
    ) -> RunSummary:
        """Test every eligible endpoint (up to *limit*) and reconcile."""
        if limit is not None and limit < 1:
            raise InvalidRequestError("limit must be a positive integer")
        window = self._window(window_size)

        results = await self._runner.run_all(limit=limit, window_size=window)
        if not results:
            raise NoTestableEndpointsError("No proxy endpoints to test")

        outcome = await self._reconciler.reconcile(results)
        return RunSummary.build(results, outcome)

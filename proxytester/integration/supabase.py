"""Supabase (PostgREST) backed inventory and audit stores.

Talks to the REST interface at ``{supabase_url}/rest/v1`` with the service
role key in both the ``apikey`` and ``Authorization`` headers:

- GET   /ip_assets?select=*&id=in.(…)&deleted_at=is.null&order=id.asc&limit=N
- PATCH /ip_assets?id=eq.<id>
- POST  /proxy_test_results

Reads that fail raise ``InventoryUnavailableError``; writes that fail raise
``PersistenceError``. No retries; the reconciler isolates write failures.

SECURITY: Never logs the service key or endpoint credentials.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from proxytester.integration.stores import AuditStore, InventoryStore
from proxytester.middleware.error_handler import (
    InventoryUnavailableError,
    PersistenceError,
)
from proxytester.models.endpoint import Endpoint, StatusUpdate
from proxytester.models.results import TestResult

logger = logging.getLogger(__name__)


class _PostgrestClient:
    """Shared URL/header handling for PostgREST tables."""

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        table: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._base_url = f"{supabase_url.rstrip('/')}/rest/v1/{table}"
        self._service_key = service_key
        self._table = table
        self._timeout = timeout_seconds

    def _headers(self, **extra: str) -> dict[str, str]:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
            **extra,
        }


class SupabaseInventory(_PostgrestClient, InventoryStore):
    """Inventory backed by the ``ip_assets`` table."""

    name = "supabase"

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        table: str = "ip_assets",
        timeout_seconds: float = 10.0,
    ) -> None:
        super().__init__(supabase_url, service_key, table, timeout_seconds)

    async def list_testable_endpoints(
        self,
        ids: list[int] | None = None,
        limit: int | None = None,
        exclude_soft_deleted: bool = True,
    ) -> list[Endpoint]:
        params: dict[str, str] = {"select": "*", "order": "id.asc"}
        if ids is not None:
            params["id"] = f"in.({','.join(str(i) for i in ids)})"
        if exclude_soft_deleted:
            params["deleted_at"] = "is.null"
        if limit is not None:
            params["limit"] = str(limit)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(
                    self._base_url, params=params, headers=self._headers()
                )
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to read %s: %s", self._table, exc)
            raise InventoryUnavailableError(
                f"Failed to read endpoint inventory: {exc}"
            ) from exc

        if not isinstance(rows, list):
            raise InventoryUnavailableError("Unexpected inventory response shape")

        endpoints: list[Endpoint] = []
        for row in rows:
            try:
                endpoints.append(Endpoint.model_validate(row))
            except ValidationError as exc:
                logger.error(
                    "Skipping malformed inventory row id=%s: %s",
                    row.get("id") if isinstance(row, dict) else None,
                    exc.error_count(),
                )
        return endpoints

    async def update_endpoint_status(
        self, endpoint_id: int, update: StatusUpdate
    ) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.patch(
                    self._base_url,
                    params={"id": f"eq.{endpoint_id}"},
                    json=update.to_row(),
                    headers=self._headers(Prefer="return=minimal"),
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PersistenceError(
                f"Failed to update status of endpoint {endpoint_id}: {exc}",
                endpoint_id=endpoint_id,
            ) from exc


def to_audit_row(result: TestResult) -> dict:
    """Map a TestResult onto the ``proxy_test_results`` columns."""
    return {
        "proxy_id": result.endpoint_id,
        "host": result.host,
        "port": result.port,
        "is_reachable": result.reachable,
        "latency_ms": result.latency_ms,
        "download_speed_kbps": result.throughput_kbps,
        "ip_address": result.external_ip,
        "error_message": result.error_message,
        "tested_at": result.tested_at.isoformat(),
    }


class SupabaseAuditLog(_PostgrestClient, AuditStore):
    """Audit log backed by the ``proxy_test_results`` table."""

    name = "supabase"

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        table: str = "proxy_test_results",
        timeout_seconds: float = 10.0,
    ) -> None:
        super().__init__(supabase_url, service_key, table, timeout_seconds)

    async def append_test_result(self, result: TestResult) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._base_url,
                    json=to_audit_row(result),
                    headers=self._headers(Prefer="return=minimal"),
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PersistenceError(
                f"Failed to append test result for endpoint {result.endpoint_id}: {exc}",
                endpoint_id=result.endpoint_id,
            ) from exc

"""Inventory and audit store contracts plus in-memory implementations.

The in-memory stores back local development and tests. The inventory can
be seeded from a YAML file of the form::

    endpoints:
      - id: 1
        ip: 198.51.100.7
        socks5_port: 1080
        auth_username: alice
        auth_password: secret
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import yaml
from pydantic import ValidationError

from proxytester.models.endpoint import Endpoint, StatusUpdate
from proxytester.models.results import TestResult

logger = logging.getLogger(__name__)


class InventoryStore(ABC):
    """Read/write access to the proxy endpoint inventory."""

    name: str = "inventory"

    @abstractmethod
    async def list_testable_endpoints(
        self,
        ids: list[int] | None = None,
        limit: int | None = None,
        exclude_soft_deleted: bool = True,
    ) -> list[Endpoint]:
        """Return endpoints, filtered to *ids* when given, ordered by id."""
        ...

    @abstractmethod
    async def update_endpoint_status(
        self, endpoint_id: int, update: StatusUpdate
    ) -> None:
        """Apply the set fields of *update* to one endpoint."""
        ...


class AuditStore(ABC):
    """Append-only sink for test results."""

    name: str = "audit"

    @abstractmethod
    async def append_test_result(self, result: TestResult) -> None:
        ...


class InMemoryInventory(InventoryStore):
    """Dict-backed inventory keyed by endpoint id."""

    name = "memory"

    def __init__(self, endpoints: list[Endpoint] | None = None) -> None:
        self._endpoints: dict[int, Endpoint] = {}
        self._lock = asyncio.Lock()
        for endpoint in endpoints or []:
            self._endpoints[endpoint.id] = endpoint

    def get(self, endpoint_id: int) -> Endpoint | None:
        return self._endpoints.get(endpoint_id)

    async def list_testable_endpoints(
        self,
        ids: list[int] | None = None,
        limit: int | None = None,
        exclude_soft_deleted: bool = True,
    ) -> list[Endpoint]:
        wanted = set(ids) if ids is not None else None
        selected = [
            ep
            for ep_id, ep in sorted(self._endpoints.items())
            if (wanted is None or ep_id in wanted)
            and not (exclude_soft_deleted and ep.is_deleted)
        ]
        if limit is not None:
            selected = selected[:limit]
        return selected

    async def update_endpoint_status(
        self, endpoint_id: int, update: StatusUpdate
    ) -> None:
        async with self._lock:
            current = self._endpoints.get(endpoint_id)
            if current is None:
                # Endpoint deleted since it was loaded; nothing to update
                logger.warning("Status update for unknown endpoint %s", endpoint_id)
                return
            self._endpoints[endpoint_id] = current.model_copy(
                update=update.model_dump(exclude_unset=True)
            )


class InMemoryAuditLog(AuditStore):
    """List-backed audit log."""

    name = "memory"

    def __init__(self) -> None:
        self.results: list[TestResult] = []

    async def append_test_result(self, result: TestResult) -> None:
        self.results.append(result)


def load_inventory_seed(yaml_path: str) -> list[Endpoint]:
    """Parse an endpoint seed YAML file into Endpoint objects.

    A missing or unparsable file yields an empty list; invalid entries are
    logged and skipped.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Inventory seed file not found at %s, starting empty", yaml_path)
        return []

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse inventory seed YAML at %s: %s", yaml_path, exc)
        return []

    if not isinstance(raw, dict) or not isinstance(raw.get("endpoints"), list):
        logger.warning("Inventory seed YAML missing 'endpoints' list, starting empty")
        return []

    endpoints: list[Endpoint] = []
    for index, entry in enumerate(raw["endpoints"]):
        try:
            endpoints.append(Endpoint.model_validate(entry))
        except ValidationError as exc:
            logger.error("Invalid endpoint entry #%d in seed: %s, skipping", index, exc)

    return endpoints

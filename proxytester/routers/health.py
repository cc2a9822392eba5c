"""Health endpoint.

- GET /health: service status, inventory backend and probe targets
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from proxytester.models.responses import ApiResponse

if TYPE_CHECKING:
    from proxytester.config.settings import ProxyTesterSettings
    from proxytester.integration.stores import AuditStore, InventoryStore


def create_health_router(
    *,
    settings: "ProxyTesterSettings",
    inventory: "InventoryStore | None" = None,
    audit: "AuditStore | None" = None,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with backend and probe configuration."""
        return ApiResponse.ok(
            {
                "status": "healthy",
                "inventory_backend": inventory.name if inventory else None,
                "audit_backend": audit.name if audit else None,
                "default_window_size": settings.default_window_size,
                "probes": {
                    "connectivity": (
                        f"{settings.connectivity_host}:{settings.connectivity_port}"
                    ),
                    "throughput": f"{settings.throughput_host}:{settings.throughput_port}",
                },
            }
        ).model_dump()

    return health_router

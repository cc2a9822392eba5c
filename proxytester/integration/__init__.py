"""External collaborators: endpoint inventory and audit log backends."""

from __future__ import annotations

from proxytester.config.settings import ProxyTesterSettings
from proxytester.integration.stores import (
    AuditStore,
    InMemoryAuditLog,
    InMemoryInventory,
    InventoryStore,
    load_inventory_seed,
)
from proxytester.integration.supabase import SupabaseAuditLog, SupabaseInventory


def build_stores(settings: ProxyTesterSettings) -> tuple[InventoryStore, AuditStore]:
    """Create the inventory and audit stores selected by *settings*."""
    if settings.inventory_backend == "supabase":
        if not (settings.supabase_url and settings.supabase_service_key):
            raise ValueError(
                "supabase backend requires supabase_url and supabase_service_key"
            )
        return (
            SupabaseInventory(
                settings.supabase_url,
                settings.supabase_service_key,
                table=settings.inventory_table,
                timeout_seconds=settings.supabase_timeout_seconds,
            ),
            SupabaseAuditLog(
                settings.supabase_url,
                settings.supabase_service_key,
                table=settings.audit_table,
                timeout_seconds=settings.supabase_timeout_seconds,
            ),
        )

    seed = (
        load_inventory_seed(settings.inventory_seed_path)
        if settings.inventory_seed_path
        else []
    )
    return InMemoryInventory(seed), InMemoryAuditLog()


__all__ = [
    "AuditStore",
    "InMemoryAuditLog",
    "InMemoryInventory",
    "InventoryStore",
    "SupabaseAuditLog",
    "SupabaseInventory",
    "build_stores",
    "load_inventory_seed",
]

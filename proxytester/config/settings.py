"""Pydantic Settings for the proxy tester service.

All environment variables use the PROXYTEST_ prefix.
Example: PROXYTEST_PORT=8002, PROXYTEST_INVENTORY_BACKEND=supabase
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class ProxyTesterSettings(BaseSettings):
    """Proxy tester configuration validated from environment variables."""

    # Service
    port: int = 8002
    log_level: str = "INFO"
    log_json: bool = True

    # Inventory / audit backend
    inventory_backend: Literal["memory", "supabase"] = "memory"
    inventory_seed_path: str | None = None  # YAML seed for the memory backend
    supabase_url: str | None = None  # e.g. "https://xyz.supabase.co"
    supabase_service_key: str | None = None
    supabase_timeout_seconds: float = Field(default=10.0, gt=0)
    inventory_table: str = "ip_assets"
    audit_table: str = "proxy_test_results"

    # Connectivity probe (IP echo over TLS)
    connectivity_host: str = "ipv4.icanhazip.com"
    connectivity_port: int = Field(default=443, ge=1, le=65535)
    connectivity_path: str = "/"
    connectivity_timeout_seconds: float = Field(default=30.0, gt=0)

    # Throughput probe (reference file over TLS)
    throughput_host: str = "proof.ovh.net"
    throughput_port: int = Field(default=443, ge=1, le=65535)
    throughput_path: str = "/files/100Kb.dat"
    throughput_connect_timeout_seconds: float = Field(default=30.0, gt=0)
    throughput_read_timeout_seconds: float = Field(default=20.0, gt=0)

    # Batch execution
    default_window_size: int = Field(default=5, ge=1)
    max_window_size: int = Field(default=50, ge=1)
    scan_default_limit: int = Field(default=50, ge=1)
    test_soft_deleted_explicit: bool = False

    user_agent: str = "ProxyTester/1.0"

    model_config = {"env_prefix": "PROXYTEST_"}

    @model_validator(mode="after")
    def _check_backend(self) -> "ProxyTesterSettings":
        if self.inventory_backend == "supabase" and not (
            self.supabase_url and self.supabase_service_key
        ):
            raise ValueError(
                "supabase backend requires PROXYTEST_SUPABASE_URL and "
                "PROXYTEST_SUPABASE_SERVICE_KEY"
            )
        if self.default_window_size > self.max_window_size:
            raise ValueError("default_window_size must not exceed max_window_size")
        return self

"""FastAPI application entry point with lifespan management.

Startup: load settings, configure logging, build the inventory/audit
backends, the SOCKS5 connector, probes, endpoint tester, batch runner,
reconciler and test service, then mount routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from proxytester.config.settings import ProxyTesterSettings
from proxytester.integration import AuditStore, InventoryStore, build_stores
from proxytester.logging_config import configure_logging
from proxytester.middleware.error_handler import register_error_handlers
from proxytester.middleware.request_id import RequestIdMiddleware
from proxytester.probes.connectivity import ConnectivityProbe
from proxytester.probes.throughput import ThroughputProbe
from proxytester.routers.health import create_health_router
from proxytester.routers.proxy_tests import create_proxy_tests_router
from proxytester.services.batch_runner import BatchRunner
from proxytester.services.endpoint_tester import EndpointTester
from proxytester.services.proxy_test_service import ProxyTestService
from proxytester.services.reconciler import ResultReconciler
from proxytester.tunnel.socks5 import TunnelConnector

logger = logging.getLogger(__name__)

# Shared state for the application, populated during lifespan startup
_state: dict = {}


def build_test_service(
    settings: ProxyTesterSettings,
    inventory: InventoryStore,
    audit: AuditStore,
) -> ProxyTestService:
    """Wire the test pipeline from *settings* and the given stores."""
    connector = TunnelConnector(default_timeout=settings.connectivity_timeout_seconds)

    connectivity = ConnectivityProbe(
        connector,
        host=settings.connectivity_host,
        port=settings.connectivity_port,
        path=settings.connectivity_path,
        timeout_seconds=settings.connectivity_timeout_seconds,
        user_agent=settings.user_agent,
    )
    throughput = ThroughputProbe(
        connector,
        host=settings.throughput_host,
        port=settings.throughput_port,
        path=settings.throughput_path,
        connect_timeout_seconds=settings.throughput_connect_timeout_seconds,
        read_timeout_seconds=settings.throughput_read_timeout_seconds,
        user_agent=settings.user_agent,
    )

    batch_runner = BatchRunner(
        inventory=inventory,
        tester=EndpointTester(connectivity, throughput),
        default_window_size=settings.default_window_size,
        test_soft_deleted_explicit=settings.test_soft_deleted_explicit,
    )
    reconciler = ResultReconciler(inventory=inventory, audit=audit)

    return ProxyTestService(
        batch_runner=batch_runner,
        reconciler=reconciler,
        max_window_size=settings.max_window_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings: ProxyTesterSettings = app.state.settings

    configure_logging(settings.log_level, json_format=settings.log_json)
    logger.info("Starting proxy tester service on port %d", settings.port)

    inventory, audit = build_stores(settings)
    test_service = build_test_service(settings, inventory, audit)

    app.include_router(
        create_health_router(settings=settings, inventory=inventory, audit=audit)
    )
    app.include_router(
        create_proxy_tests_router(
            test_service=test_service,
            scan_default_limit=settings.scan_default_limit,
        )
    )

    _state.update({
        "settings": settings,
        "inventory": inventory,
        "audit": audit,
        "test_service": test_service,
    })

    logger.info(
        "Proxy tester started (inventory=%s, window=%d)",
        inventory.name,
        settings.default_window_size,
    )

    yield

    logger.info("Proxy tester shut down")


def create_app(settings: ProxyTesterSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Settings are loaded eagerly so that an invalid configuration (e.g. the
    supabase backend without credentials) fails at startup.
    """
    settings = settings or ProxyTesterSettings()

    app = FastAPI(
        title="Proxy Tester Service",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    return app


app = create_app()

"""Shared test fixtures for the proxy tester suite."""

from __future__ import annotations

import os

import pytest

from proxytester.config.settings import ProxyTesterSettings


# ---------------------------------------------------------------------------
# Keep developer environment out of ProxyTesterSettings in tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop PROXYTEST_* variables so settings use their defaults."""
    for key in list(os.environ):
        if key.startswith("PROXYTEST_"):
            monkeypatch.delenv(key)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> ProxyTesterSettings:
    """Test settings with short timeouts."""
    return ProxyTesterSettings(
        connectivity_timeout_seconds=1.0,
        throughput_connect_timeout_seconds=1.0,
        throughput_read_timeout_seconds=1.0,
        default_window_size=2,
    )


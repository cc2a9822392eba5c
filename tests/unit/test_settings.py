"""Unit tests for ProxyTesterSettings."""

import pytest
from pydantic import ValidationError

from proxytester.config.settings import ProxyTesterSettings


class TestDefaults:
    """Test default values."""

    def test_defaults(self):
        s = ProxyTesterSettings()
        assert s.port == 8002
        assert s.inventory_backend == "memory"
        assert s.connectivity_host == "ipv4.icanhazip.com"
        assert s.connectivity_port == 443
        assert s.connectivity_timeout_seconds == 30.0
        assert s.throughput_host == "proof.ovh.net"
        assert s.throughput_path == "/files/100Kb.dat"
        assert s.throughput_read_timeout_seconds == 20.0
        assert s.default_window_size == 5
        assert s.max_window_size == 50
        assert s.test_soft_deleted_explicit is False


class TestEnvironment:
    """Test PROXYTEST_ environment loading."""

    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("PROXYTEST_DEFAULT_WINDOW_SIZE", "8")
        monkeypatch.setenv("PROXYTEST_CONNECTIVITY_HOST", "api.ipify.org")
        monkeypatch.setenv("PROXYTEST_LOG_JSON", "false")

        s = ProxyTesterSettings()

        assert s.default_window_size == 8
        assert s.connectivity_host == "api.ipify.org"
        assert s.log_json is False

    def test_ignores_unprefixed_env(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_WINDOW_SIZE", "9")
        assert ProxyTesterSettings().default_window_size == 5


class TestValidation:
    """Test field and cross-field validation."""

    def test_supabase_requires_credentials(self):
        with pytest.raises(ValidationError):
            ProxyTesterSettings(inventory_backend="supabase")

    def test_supabase_with_credentials(self):
        s = ProxyTesterSettings(
            inventory_backend="supabase",
            supabase_url="https://xyz.supabase.co",
            supabase_service_key="key",
        )
        assert s.inventory_backend == "supabase"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            ProxyTesterSettings(inventory_backend="mysql")

    def test_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProxyTesterSettings(default_window_size=0)

    def test_default_window_within_max(self):
        with pytest.raises(ValidationError):
            ProxyTesterSettings(default_window_size=20, max_window_size=10)

    def test_timeouts_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProxyTesterSettings(connectivity_timeout_seconds=0)

    def test_port_range(self):
        with pytest.raises(ValidationError):
            ProxyTesterSettings(throughput_port=70000)

"""Configuration module: service settings."""

from proxytester.config.settings import ProxyTesterSettings

__all__ = ["ProxyTesterSettings"]

"""SOCKS5 tunnel package."""

from proxytester.tunnel.socks5 import Tunnel, TunnelConnector

__all__ = ["Tunnel", "TunnelConnector"]

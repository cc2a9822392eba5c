"""Proxy connectivity and performance testing service."""

"""Proxy endpoint models as read from (and written back to) the inventory.

Field names follow the inventory's ``ip_assets`` columns so that rows can be
validated directly with ``Endpoint.model_validate(row)``. The proxy address
is stored in the ``ip`` column and exposed here as ``host``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class EndpointStatus(str, Enum):
    """Operational status of a proxy endpoint."""

    UNKNOWN = "unknown"
    ACTIVE = "active"
    UNREACHABLE = "unreachable"


class ProxyCredentials(BaseModel):
    """Username/password pair for SOCKS5 sub-negotiation (RFC 1929)."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str = Field(default="", repr=False)


class Endpoint(BaseModel):
    """A proxy asset under test."""

    model_config = ConfigDict(extra="ignore")

    id: int
    host: str = Field(validation_alias=AliasChoices("host", "ip"))
    socks5_port: int | None = None
    http_port: int | None = None
    https_port: int | None = None
    proxy_type: str | None = None
    auth_username: str | None = None
    auth_password: str | None = Field(default=None, repr=False)

    status: EndpointStatus = EndpointStatus.UNKNOWN
    last_ip: str | None = None
    last_latency_ms: int | None = None
    last_speed_kbps: int | None = None
    last_tested_at: datetime | None = None
    deleted_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: object) -> object:
        # Rows written by other tools may carry statuses we don't own
        if isinstance(value, EndpointStatus):
            return value
        if value in {s.value for s in EndpointStatus}:
            return value
        return EndpointStatus.UNKNOWN

    @property
    def tunnel_port(self) -> int | None:
        """SOCKS5 port if one is configured and in the valid TCP range."""
        port = self.socks5_port
        if port is None or not 1 <= port <= 65535:
            return None
        return port

    @property
    def credentials(self) -> ProxyCredentials | None:
        if not self.auth_username:
            return None
        return ProxyCredentials(
            username=self.auth_username,
            password=self.auth_password or "",
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class StatusUpdate(BaseModel):
    """Partial update of an endpoint's live status fields.

    Only fields that were explicitly set are written, so an ``unreachable``
    update built without measurements leaves the previous ``last_*`` values
    in place, while ``last_speed_kbps=None`` explicitly clears throughput.
    """

    status: EndpointStatus
    last_ip: str | None = None
    last_latency_ms: int | None = None
    last_speed_kbps: int | None = None
    last_tested_at: datetime

    def to_row(self) -> dict:
        """Return the set fields as a JSON-ready column mapping."""
        return self.model_dump(mode="json", exclude_unset=True)

"""Pydantic request models for the proxy test endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ProxyTestRequest(BaseModel):
    """Request model for a targeted test run (max 500 endpoints)."""

    endpoint_ids: list[int] = Field(..., min_length=1, max_length=500)
    window_size: int | None = Field(default=None, ge=1)

    @field_validator("endpoint_ids")
    @classmethod
    def _unique_ids(cls, value: list[int]) -> list[int]:
        if len(set(value)) != len(value):
            raise ValueError("endpoint_ids must not contain duplicates")
        return value

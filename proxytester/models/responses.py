"""Response envelope shared by the proxy-test, scan and health routes.

Run summaries, health data and error responses all travel inside it, so a
client checks ``success`` before reading ``data`` (a ``TestRunSummary`` for
test runs) or ``error``/``meta`` (e.g. ``{"requested": 3}`` on a 404).
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """``{success, data, error, meta}`` wrapper around every route's payload."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None

    @classmethod
    def ok(cls, data: T) -> "ApiResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, meta: dict | None = None) -> "ApiResponse[T]":
        return cls(success=False, error=error, meta=meta)

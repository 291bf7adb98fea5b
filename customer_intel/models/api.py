"""API envelope and service result models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from customer_intel.errors import ErrorCode


class ServiceResult(BaseModel):
    """Outcome of a repository operation."""

    operation: str
    success: bool
    data: Any = None
    error: str | None = None
    code: ErrorCode | None = None
    reason: str | None = None
    field: str | None = None
    execution_time_ms: float = 0.0


class ApiResponse(BaseModel):
    """Envelope wrapping every JSON response."""

    success: bool
    data: Any = None
    error: str | None = None
    code: str | None = None
    field: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

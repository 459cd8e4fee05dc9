"""
ScentMatch Backend — Shared Schema Pieces
===========================================

What:  Base model and the response shapes shared by every router.
Why:   The frontend speaks camelCase JSON (`userId`, `otpCode`) while the
       Python side stays snake_case. One alias generator keeps both honest.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for all API schemas.

    - Serialized with camelCase keys (FastAPI dumps response models by alias)
    - Accepts either camelCase or snake_case on input
    - Can be built straight from ORM objects
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(CamelModel):
    """
    Standardized error body for every failed request.

    Example:
        {"success": false, "error": "Invalid or expired code", "requestId": "a1b2c3d4"}
    """

    success: bool = Field(default=False)
    error: str = Field(description="Human-readable error description")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(CamelModel):
    success: bool = Field(default=True)
    message: str


class HealthResponse(CamelModel):
    """
    Liveness probe response.

    The endpoint always answers 200 while the process is up; `status` is
    "degraded" when the database cannot be reached.
    """

    status: str = Field(description="ok or degraded")
    timestamp: datetime = Field(description="Server time (UTC ISO 8601)")
    version: str = Field(description="Application version")
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")

"""
Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from nerdsphere.core.clock import as_utc


class SubmitMessageRequest(BaseModel):
    """Request schema for POST /messages.

    Both fields are optional here so that a missing value is reported as
    ``MissingField`` by the submission service rather than as a schema error.
    """

    content: Optional[str] = Field(default=None, description="Raw message text")
    fingerprint: Optional[str] = Field(default=None, description="Client class token used for rate limiting")

    model_config = {
        "json_schema_extra": {
            "example": {
                "content": "Hello, nerds!",
                "fingerprint": "-1x9k2ab",
            }
        }
    }


class MessageResponse(BaseModel):
    """Schema for a single stored message."""
    id: str
    content: str
    created_at: datetime
    user_fingerprint: str

    model_config = {
        "from_attributes": True,
    }

    @field_validator("created_at")
    @classmethod
    def attach_utc(cls, v: datetime) -> datetime:
        """Stored timestamps are naive UTC."""
        return as_utc(v)


class SubmitMessageResponse(BaseModel):
    """Response schema for POST /messages."""
    success: bool = True
    data: MessageResponse


class MessagesFeedResponse(BaseModel):
    """Response schema for GET /messages, newest first."""
    success: bool = True
    data: List[MessageResponse]


class CleanupResponse(BaseModel):
    """Response schema for /cleanup."""
    success: bool = True
    message: str = "Old messages cleaned up successfully"
    deleted_count: int = Field(alias="deletedCount")

    model_config = {
        "populate_by_name": True,
    }


class HealthResponse(BaseModel):
    """Response schema for health endpoints."""
    status: str
    checks: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Standard error response schema."""
    success: bool = False
    error: str
    kind: Optional[str] = None
    remaining_seconds: Optional[int] = Field(default=None, alias="remainingSeconds")

"""Response envelope shared by every endpoint."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    timestamp: datetime = Field(..., description="Server time the response was built")
    request_id: str = Field(..., description="Correlation ID of the request")
    api_version: str = Field(default="v1", description="API version")


class ApiResponse(BaseModel):
    """Successful response envelope."""

    status: bool = Field(default=True, description="Whether the operation succeeded")
    message: str = Field(..., description="Human readable outcome")
    data: Dict[str, Any] = Field(default_factory=dict, description="Payload")
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """Problem details (RFC 7807) returned for every rejected request."""

    title: str = Field(..., description="Short error category")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Reason suitable for direct display")
    code: str = Field(default="INTERNAL_ERROR", description="Stable machine readable error code")
    retryable: bool = Field(default=False, description="Whether repeating the request may succeed")
    errors: Optional[Dict[str, Any]] = Field(default=None, description="Structured error context")
    instance: Optional[str] = Field(default=None, description="Request path")
    request_id: str = Field(..., description="Correlation ID of the request")
    timestamp: datetime

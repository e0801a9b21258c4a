"""
Error response schemas for API documentation and consistent error formatting.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict


class ErrorBody(BaseModel):
    """Schema for standardized error responses."""

    code: str = Field(..., description="Error code identifier", examples=["VALIDATION_ERROR"])
    message: str = Field(..., description="Human-readable error message")
    timestamp: str = Field(..., description="ISO timestamp when the error occurred")
    request_id: Optional[str] = Field(None, description="Request identifier for tracing")
    details: Optional[List[Dict[str, str]]] = Field(None, description="Field level errors")


class ErrorResponse(BaseModel):
    error: ErrorBody

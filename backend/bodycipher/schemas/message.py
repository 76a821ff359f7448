"""
bodycipher: Pydantic Request/Response Schemas
===============================================

What:  Pydantic models for the demo API surface.
How:   Handlers of encrypted endpoints use these exactly like any FastAPI
       model; decryption has already happened by the time FastAPI parses
       the JSON body.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class MessageIn(BaseModel):
    """
    What:  JSON body accepted by POST /api/messages.
    Who:   Sent by clients as base64 AES-CBC ciphertext of this JSON.
    """
    sender: str = Field(min_length=1, max_length=100, description="Who is sending the message")
    text: str = Field(min_length=1, max_length=10_000, description="Message content")
    tags: List[str] = Field(default_factory=list, description="Optional labels")

    @field_validator("sender")
    @classmethod
    def strip_sender(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("sender must not be blank")
        return stripped


class MessageOut(BaseModel):
    """Acknowledgement returned (encrypted) by POST /api/messages."""
    sender: str
    text: str
    tags: List[str]
    length: int = Field(description="Number of characters in text")
    received_at: datetime = Field(description="When the server accepted the message (UTC)")


class QueryEchoResponse(BaseModel):
    """
    What:  Decrypted query parameters as the handler observed them.
    Who:   Returned by GET /api/query.
    """
    query_string: str = Field(description="Raw (decrypted) query string")
    params: Dict[str, List[str]] = Field(description="Parsed parameters")


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "padding_error",
            "message": "Encrypted payload has invalid block padding",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health; never encrypted."""
    status: str = Field(description="Overall service status")
    version: str = Field(description="Application version")
    encrypted_endpoints: int = Field(description="Number of endpoints behind the interceptor")
    uptime_seconds: float = Field(description="Seconds since service started")

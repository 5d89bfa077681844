from pydantic import BaseModel, Field
from typing import Optional


class ChatReply(BaseModel):
    """Chat reply model (buffered replies and every fallback)"""
    reply: str = Field(..., description="Assistant reply text")

    class Config:
        json_schema_extra = {
            "example": {
                "reply": "Happy to help with that. Inverter alerts can be muted from the site page..."
            }
        }


class TokenEvent(BaseModel):
    """One streamed increment of assistant text"""
    token: str = Field(..., description="Text increment")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Error message")

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Missing question"
            }
        }


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(default="ok", description="Overall status")
    configured: bool = Field(..., description="Whether a provider API key is set")
    model: Optional[str] = Field(None, description="Provider model name")

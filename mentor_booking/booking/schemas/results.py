"""Failure half of the discriminated results returned by booking.api"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorResult(BaseModel):
    success: bool = False
    error: str
    error_code: str
    field_errors: Optional[Dict[str, List[str]]] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    status_code: int = Field(500, exclude=True)


class WebhookAck(BaseModel):
    success: bool = True
    duplicate: bool = False
    event: Optional[str] = None
    orphaned: bool = False


class SweepResponse(BaseModel):
    success: bool = True
    deleted_count: int
    total_processed: int
    message: str

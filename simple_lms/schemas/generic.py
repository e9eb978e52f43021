from datetime import datetime
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

from simple_lms.utils.time_utils import utc_now

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope for every API response.

    status is SUCCESS or ERROR; code carries the HTTP status on errors.
    """
    status: Literal["SUCCESS", "ERROR"]
    message: Optional[str] = None
    code: Optional[int] = None
    data: Optional[T] = None
    timestamp: datetime = Field(default_factory=utc_now, description="UTC")

    @classmethod
    def success(cls, data: Optional[T] = None, message: Optional[str] = None):
        return cls(status="SUCCESS", message=message, data=data)

    @classmethod
    def error(cls, code: int, message: str, data: Optional[T] = None):
        return cls(status="ERROR", message=message, code=code, data=data)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
    environment: str
    redis: bool = Field(..., description="Whether completion rate limiting is active")

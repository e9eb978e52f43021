from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ModuleUnlockInfo(BaseModel):
    """Computed lock state of a module for one user"""

    locked: bool = Field(..., description="Whether the module is still locked")
    unlock_at: Optional[datetime] = Field(
        None, description="Instant the module unlocks, when computable"
    )


class AccessStatus(BaseModel):
    """Access grant state of a course for one user"""

    course_id: int
    has_access: bool
    expires_at: Optional[datetime] = Field(None, description="None for lifetime access")
    days_remaining: Optional[int] = Field(None, description="None for lifetime access", ge=0)
    expiring_soon: bool = False


class CourseSummary(BaseModel):
    """Course the user is enrolled in"""

    id: int
    title: str


class GrantAccessRequest(BaseModel):
    """Request schema for granting or revoking access"""

    user_id: int = Field(..., gt=0)
    course_id: int = Field(..., gt=0)


class GrantResponse(BaseModel):
    """Stored grant"""

    user_id: int
    course_id: int
    started_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class CleanupResponse(BaseModel):
    """Result of an expired-access sweep"""

    revoked: int

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from simple_lms.model.enums import PostStatus


# =============================
#   Request Schemas
# =============================
class StatusUpdateRequest(BaseModel):
    """Request schema for a module or lesson status change"""

    status: PostStatus = Field(..., description="New publication status")


class ReorderRequest(BaseModel):
    """Child IDs in their new order"""

    ids: List[int] = Field(..., min_length=1)


# =============================
#   Response Schemas
# =============================
class ModuleOutline(BaseModel):
    """Module as shown in the course navigation"""

    id: int
    title: str
    order: int
    lesson_count: int
    locked: bool
    unlock_at: Optional[datetime] = None


class LessonOutline(BaseModel):
    id: int
    title: str
    order: int
    completed: bool = False


class StatusChangeResponse(BaseModel):
    id: int
    status: PostStatus
    cascaded_lesson_ids: List[int] = []


class ReorderResponse(BaseModel):
    updated: int

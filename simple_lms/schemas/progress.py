from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from simple_lms.model.enums import Direction
from simple_lms.utils.time_utils import to_naive_utc

# One beacon never covers more than a day
MAX_TIME_BEACON_SECONDS = 86400


# =============================
#   Request Schemas
# =============================
class TimeSpentRequest(BaseModel):
    """Time beacon sent by the lesson page"""

    seconds: int = Field(..., le=MAX_TIME_BEACON_SECONDS, description="Seconds spent since the last beacon")


class LessonViewRequest(BaseModel):
    """Optional explicit view instant (defaults to server time)"""

    viewed_at: Optional[datetime] = None

    @field_validator("viewed_at")
    @classmethod
    def normalize_viewed_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value) if value is not None else None


# =============================
#   Response Schemas
# =============================
class LessonRef(BaseModel):
    id: int
    title: str
    module_id: Optional[int] = None


class LessonCompletionResponse(BaseModel):
    lesson_id: int
    completed: bool
    completed_lessons: int
    course_progress: int = Field(..., ge=0, le=100)


class TimeSpentResponse(BaseModel):
    lesson_id: int
    recorded: bool


class AdjacentLessonResponse(BaseModel):
    lesson_id: int
    direction: Direction
    lesson: Optional[LessonRef] = None


class CourseProgressOverview(BaseModel):
    """Progress snapshot of one course for one user"""

    course_id: int
    total_lessons: int = Field(..., ge=0)
    completed_lessons: int = Field(..., ge=0)
    percentage: int = Field(..., ge=0, le=100)
    continue_lesson_id: Optional[int] = None
    is_completed: bool = False


class CourseProgressRow(BaseModel):
    course_id: int
    total_lessons: int
    completed_lessons: int
    completion_percentage: int = Field(..., ge=0, le=100)
    total_time_spent: int = 0
    last_activity: Optional[datetime] = None


class ProgressSummary(BaseModel):
    total_courses: int = 0
    avg_completion: float = 0.0


class UserProgressReport(BaseModel):
    """All tracked courses of a user"""

    user_id: int
    courses: List[CourseProgressRow] = []
    summary: ProgressSummary = ProgressSummary()


class ModuleStats(BaseModel):
    module_id: int
    tracked_lessons: int
    completed_lessons: int


class CourseStats(BaseModel):
    """Course-wide statistics across learners"""

    course_id: int
    module_count: int
    lesson_count: int
    enrolled_users: int
    users_with_progress: int
    avg_completion_rate: float
    total_time_spent: int
    modules: List[ModuleStats] = []



# =============================
#   Personal Data
# =============================
class ProgressExportItem(BaseModel):
    """One stored progress row in a personal data export"""

    id: int
    course_id: int
    course_title: Optional[str] = None
    lesson_id: int
    lesson_title: Optional[str] = None
    completed: bool
    started_at: datetime
    completed_at: Optional[datetime] = None
    last_viewed_at: Optional[datetime] = None
    time_spent: int = 0


class ProgressExport(BaseModel):
    user_id: int
    page: int
    items: List[ProgressExportItem] = []
    done: bool = True


class ProgressErasureResponse(BaseModel):
    user_id: int
    removed: int

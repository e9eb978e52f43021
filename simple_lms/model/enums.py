"""
Enums for course content, scheduling and navigation
"""
from enum import Enum


class PostStatus(str, Enum):
    """Publication status of a course, module or lesson"""
    PUBLISHED = "PUBLISHED"
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PRIVATE = "PRIVATE"


class ScheduleMode(str, Enum):
    """Course-level release schedule"""
    IMMEDIATE = "IMMEDIATE"
    FIXED_DATE = "FIXED_DATE"
    DRIP = "DRIP"


class DripStrategy(str, Enum):
    """How a DRIP course releases its modules"""
    INTERVAL = "INTERVAL"  # Module i unlocks i * interval days after enrollment
    PER_MODULE = "PER_MODULE"  # Each module carries its own drip settings


class ModuleDripMode(str, Enum):
    """Module-level release rule"""
    NONE = "NONE"
    DAYS_AFTER_ENROLLMENT = "DAYS_AFTER_ENROLLMENT"
    FIXED_DATE = "FIXED_DATE"
    MANUAL = "MANUAL"


class AccessDurationUnit(str, Enum):
    """Unit for a course's access duration"""
    DAYS = "DAYS"
    WEEKS = "WEEKS"
    MONTHS = "MONTHS"
    YEARS = "YEARS"

    @property
    def days(self) -> int:
        """Number of days one unit spans"""
        multipliers = {
            "DAYS": 1,
            "WEEKS": 7,
            "MONTHS": 30,
            "YEARS": 365,
        }
        return multipliers[self.value]


class Direction(str, Enum):
    """Navigation direction within a course lesson sequence"""
    PREV = "prev"
    NEXT = "next"

    @property
    def step(self) -> int:
        return -1 if self == Direction.PREV else 1

"""
Model package - Database models and enums
"""
from simple_lms.model.base import Base, BaseMixin, TimestampMixin, SoftDeleteMixin
from simple_lms.model.enums import (
    AccessDurationUnit,
    Direction,
    DripStrategy,
    ModuleDripMode,
    PostStatus,
    ScheduleMode,
)
from simple_lms.model.course_models import Course, Module, Lesson
from simple_lms.model.progress_models import CourseAccess, LessonProgress

__all__ = [
    # Base classes
    'Base',
    'BaseMixin',
    'TimestampMixin',
    'SoftDeleteMixin',
    # Enums
    'AccessDurationUnit',
    'Direction',
    'DripStrategy',
    'ModuleDripMode',
    'PostStatus',
    'ScheduleMode',
    # Course models
    'Course',
    'Module',
    'Lesson',
    # Per-user state
    'CourseAccess',
    'LessonProgress',
]

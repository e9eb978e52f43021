"""
Repository package - Data access layer
"""

from simple_lms.repositories.base_repo import BaseRepository
from simple_lms.repositories.course_repo import CourseRepository
from simple_lms.repositories.module_repo import ModuleRepository
from simple_lms.repositories.lesson_repo import LessonRepository
from simple_lms.repositories.progress_repo import ProgressRepository
from simple_lms.repositories.access_repo import AccessRepository

__all__ = [
    "BaseRepository",
    "CourseRepository",
    "ModuleRepository",
    "LessonRepository",
    "ProgressRepository",
    "AccessRepository",
]

"""
Per-user state: access grants and lesson progress
"""

from sqlalchemy import (
    Column,
    Integer,
    Boolean,
    DateTime,
    Index,
    UniqueConstraint,
)

from simple_lms.model.base import Base, BaseMixin, SoftDeleteMixin


class CourseAccess(Base, BaseMixin, SoftDeleteMixin):
    """
    Access grant for (user, course). Written by the enrollment flow.

    expires_at NULL means lifetime access. started_at is the drip anchor.
    Revoked grants are soft-deleted.
    """

    __tablename__ = "course_access"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_access_user_course"),
    )

    user_id = Column(Integer, nullable=False, index=True)
    course_id = Column(Integer, nullable=False, index=True)
    started_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    @property
    def is_lifetime(self) -> bool:
        return self.expires_at is None

    def __repr__(self):
        return f"<CourseAccess(user_id={self.user_id}, course_id={self.course_id})>"


class LessonProgress(Base, BaseMixin):
    """
    Completion and view state for (user, lesson). Created lazily.
    """

    __tablename__ = "lesson_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_lesson_progress_user_lesson"),
        Index("ix_lesson_progress_user_course", "user_id", "course_id"),
        Index("ix_lesson_progress_course_stats", "course_id", "completed", "user_id"),
    )

    user_id = Column(Integer, nullable=False)
    lesson_id = Column(Integer, nullable=False)
    module_id = Column(Integer, nullable=False)
    course_id = Column(Integer, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    last_viewed_at = Column(DateTime, nullable=True)
    time_spent = Column(Integer, default=0, nullable=False)  # Seconds

    def __repr__(self):
        return (
            f"<LessonProgress(user_id={self.user_id}, lesson_id={self.lesson_id}, "
            f"completed={self.completed})>"
        )

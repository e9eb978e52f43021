"""
Course content models: course -> ordered modules -> ordered lessons
"""

from sqlalchemy import (
    Column,
    String,
    Text,
    Enum as SQLEnum,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
)

from simple_lms.model.base import Base, BaseMixin, SoftDeleteMixin
from simple_lms.model.enums import (
    AccessDurationUnit,
    DripStrategy,
    ModuleDripMode,
    PostStatus,
    ScheduleMode,
)


class Course(Base, BaseMixin, SoftDeleteMixin):
    """
    Course with its release schedule and access duration settings
    """

    __tablename__ = "courses"

    title = Column(String(255), nullable=False)
    status = Column(
        SQLEnum(PostStatus, name="post_status"),
        default=PostStatus.DRAFT,
        nullable=False,
    )
    product_id = Column(Integer, nullable=True)  # External commerce product

    schedule_mode = Column(
        SQLEnum(ScheduleMode, name="schedule_mode"),
        default=ScheduleMode.IMMEDIATE,
        nullable=False,
    )
    fixed_date = Column(DateTime, nullable=True)
    drip_strategy = Column(
        SQLEnum(DripStrategy, name="drip_strategy"),
        default=DripStrategy.INTERVAL,
        nullable=False,
    )
    drip_interval_days = Column(Integer, default=0, nullable=False)

    # 0 = lifetime access
    access_duration_value = Column(Integer, default=0, nullable=False)
    access_duration_unit = Column(
        SQLEnum(AccessDurationUnit, name="access_duration_unit"),
        default=AccessDurationUnit.DAYS,
        nullable=False,
    )

    def __repr__(self):
        return f"<Course(id={self.id}, title={self.title})>"


class Module(Base, BaseMixin, SoftDeleteMixin):
    """
    Module belonging to a course, ordered by menu_order
    """

    __tablename__ = "modules"

    course_id = Column(
        Integer,
        ForeignKey("courses.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title = Column(String(255), nullable=False)
    status = Column(
        SQLEnum(PostStatus, name="post_status"),
        default=PostStatus.DRAFT,
        nullable=False,
    )
    menu_order = Column(Integer, default=0, nullable=False)

    drip_mode = Column(
        SQLEnum(ModuleDripMode, name="module_drip_mode"),
        default=ModuleDripMode.NONE,
        nullable=False,
    )
    drip_days = Column(Integer, default=0, nullable=False)
    unlock_date = Column(DateTime, nullable=True)
    manual_unlocked = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Module(id={self.id}, title={self.title})>"


class Lesson(Base, BaseMixin, SoftDeleteMixin):
    """
    Lesson belonging to a module, ordered by menu_order
    """

    __tablename__ = "lessons"

    module_id = Column(
        Integer,
        ForeignKey("modules.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    status = Column(
        SQLEnum(PostStatus, name="post_status"),
        default=PostStatus.DRAFT,
        nullable=False,
    )
    menu_order = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<Lesson(id={self.id}, title={self.title})>"

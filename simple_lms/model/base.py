from sqlalchemy import Column, DateTime, Integer, Boolean
from sqlalchemy.orm import declarative_base

from simple_lms.utils.time_utils import utc_now

Base = declarative_base()


# --- Mixin ---
class TimestampMixin:
    """created_date / updated_date, set from the application clock in UTC."""

    created_date = Column(DateTime, default=utc_now, nullable=False)
    updated_date = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)


class SoftDeleteMixin:
    """Soft delete flag plus the instant the row was deleted."""

    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    def mark_deleted(self):
        self.is_deleted = True
        self.deleted_at = utc_now()

    def mark_restored(self):
        self.is_deleted = False
        self.deleted_at = None


# --- Base class for all models ---
class BaseMixin(TimestampMixin):
    """Integer primary key and timestamps. Subclasses name their own table."""

    id = Column(Integer, primary_key=True, index=True)

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"

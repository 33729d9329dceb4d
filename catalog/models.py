"""Core SQLAlchemy models (2.x style) for the course catalog schema.

Departments group courses; courses carry the fee, rating, credit and
scheduling attributes the search endpoints filter on.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class CourseLevel(str, Enum):
    """Academic level of a course."""
    UG = "UG"
    PG = "PG"


class DeliveryMode(str, Enum):
    """How a course is delivered."""
    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"


class Department(Base):
    """Departments table."""
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    # Relationships
    courses: Mapped[list[Course]] = relationship("Course", back_populates="department")


class Course(Base):
    """Courses table."""
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    department_id: Mapped[int] = mapped_column(
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[str] = mapped_column(String(2), nullable=False)
    delivery_mode: Mapped[str] = mapped_column(String(10), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_weeks: Mapped[int] = mapped_column(Integer, nullable=False)
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    tuition_fee: Mapped[float] = mapped_column(Float, nullable=False)
    year_offered: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, nullable=False)

    # Relationship
    department: Mapped[Department] = relationship("Department", back_populates="courses")

    __table_args__ = (
        Index("ix_courses_level", "level"),
        Index("ix_courses_delivery_mode", "delivery_mode"),
        Index("ix_courses_rating", "rating"),
        Index("ix_courses_tuition_fee", "tuition_fee"),
        Index("ix_courses_year_offered", "year_offered"),
    )

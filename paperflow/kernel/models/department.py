"""
Department, Course and Subject models.

A department has at most one Head of School (HOS), who is the first-stage
reviewer for every file classified under that department. Courses group a
department's subjects; a subject may also sit directly under its department.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column

from paperflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class Department(Base, TimestampMixin):
    """Academic department."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    code: Mapped[Optional[str]] = mapped_column(
        String(50),
        unique=True,
        nullable=True,
    )
    hos_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )
    hos_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Department {self.name}>"


class Course(Base, TimestampMixin):
    """Programme of study within a department."""

    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_courses_department_code", "department_id", "code", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Course {self.code}>"


class Subject(Base, TimestampMixin):
    """Subject taught in a department; a lecturer uploads papers against it."""

    __tablename__ = "subjects"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    department_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("departments.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    lecturer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )
    lecturer_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_subjects_department_code", "department_id", "code", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Subject {self.code}>"

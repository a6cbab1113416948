"""The slice of the course catalog that entitlement checks read."""

from typing import Literal

from sqlmodel import Field, SQLModel

EnrollmentStatus = Literal["pending", "active", "revoked"]


class Course(SQLModel, table=True):
    __tablename__ = "course"
    id: str = Field(primary_key=True, nullable=False)
    teacher_id: str = Field(index=True, nullable=False)
    title: str = Field(default="", nullable=False)


class Lesson(SQLModel, table=True):
    __tablename__ = "lesson"
    id: str = Field(primary_key=True, nullable=False)
    course_id: str = Field(foreign_key="course.id", index=True, nullable=False)
    title: str = Field(default="", nullable=False)
    media_id: str | None = Field(default=None, nullable=True)  # None until a video is attached


class Enrollment(SQLModel, table=True):
    __tablename__ = "enrollment"
    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, nullable=False)
    course_id: str = Field(foreign_key="course.id", index=True, nullable=False)
    status: str = Field(default="pending", nullable=False)

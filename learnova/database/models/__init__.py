"""Module for database models."""

from .catalog import Course, Enrollment, Lesson
from .token_usage import TokenUsageRecord

__all__ = [
    "Course",
    "Enrollment",
    "Lesson",
    "TokenUsageRecord",
]

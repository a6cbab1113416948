"""Handler for the entitlement side of the course catalog."""

from sqlmodel import select

from learnova.database.models import Course, Enrollment, Lesson
from learnova.database.models.catalog import EnrollmentStatus
from learnova.utils.logger import get_logger

from .base import BaseDatabaseHandler

logger = get_logger(__name__)


class CatalogHandler(BaseDatabaseHandler):
    """Read access to courses, lessons and enrollments, plus seeding helpers."""

    # region Entitlement
    def course_exists(self, course_id: str) -> bool:
        with self._get_session() as session:
            return session.exec(select(Course).where(Course.id == course_id)).first() is not None

    def is_course_teacher(self, subject_id: str, course_id: str) -> bool:
        with self._get_session() as session:
            course = session.exec(select(Course).where(Course.id == course_id)).first()
            return course is not None and course.teacher_id == subject_id

    def is_teacher(self, subject_id: str) -> bool:
        """Whether the subject owns at least one course."""
        with self._get_session() as session:
            return session.exec(select(Course).where(Course.teacher_id == subject_id)).first() is not None

    def has_active_enrollment(self, subject_id: str, course_id: str) -> bool:
        with self._get_session() as session:
            enrollment = session.exec(
                select(Enrollment)
                .where(Enrollment.user_id == subject_id)
                .where(Enrollment.course_id == course_id)
                .where(Enrollment.status == "active")
            ).first()
            return enrollment is not None

    def is_entitled(self, subject_id: str, course_id: str) -> bool:
        """The subject teaches the course or holds an active enrollment in it."""
        return self.is_course_teacher(subject_id, course_id) or self.has_active_enrollment(subject_id, course_id)

    def get_playable_lesson(self, lesson_id: str, course_id: str) -> Lesson | None:
        """Get the lesson if it belongs to the course and has media attached."""
        with self._get_session() as session:
            lesson = session.exec(select(Lesson).where(Lesson.id == lesson_id)).first()

        if lesson is None or lesson.course_id != course_id or not lesson.media_id:
            return None

        return lesson

    # region Seeding
    def add_course(self, course_id: str, teacher_id: str, title: str = "") -> Course:
        course = Course(id=course_id, teacher_id=teacher_id, title=title)
        with self._get_session() as session:
            session.add(course)
            session.commit()
            session.refresh(course)
        return course

    def add_lesson(self, lesson_id: str, course_id: str, media_id: str | None, title: str = "") -> Lesson:
        lesson = Lesson(id=lesson_id, course_id=course_id, media_id=media_id, title=title)
        with self._get_session() as session:
            session.add(lesson)
            session.commit()
            session.refresh(lesson)
        return lesson

    def set_enrollment(self, user_id: str, course_id: str, status: EnrollmentStatus = "active") -> Enrollment:
        """Create or update the enrollment of a user in a course."""
        with self._get_session() as session:
            enrollment = session.exec(
                select(Enrollment).where(Enrollment.user_id == user_id).where(Enrollment.course_id == course_id)
            ).first()
            if enrollment is None:
                enrollment = Enrollment(user_id=user_id, course_id=course_id)

            enrollment.status = status
            session.add(enrollment)
            session.commit()
            session.refresh(enrollment)

        logger.debug("Enrollment of %s in %s is now %s", user_id, course_id, status)
        return enrollment

"""CLI for seeding the entitlement catalog, for local development."""

import argparse
import json
import sys
from pathlib import Path

from pydantic import BaseModel, ValidationError

from learnova.constants import DEFAULT_INSTANCE_PATH
from learnova.database.handlers import CatalogHandler
from learnova.database.init import create_db_engine, init_db
from learnova.database.models.catalog import EnrollmentStatus
from learnova.services.app_paths_helper import AppPathsHelper
from learnova.utils.cli import console
from learnova.utils.logger import get_logger, setup_logger
from learnova.version import PROGRAM_NAME, __version__

logger = get_logger(__name__)


class SeedLesson(BaseModel):
    id: str
    title: str = ""
    media_id: str | None = None


class SeedEnrollment(BaseModel):
    user_id: str
    status: EnrollmentStatus = "active"


class SeedCourse(BaseModel):
    id: str
    teacher_id: str
    title: str = ""
    lessons: list[SeedLesson] = []
    enrollments: list[SeedEnrollment] = []


class SeedFile(BaseModel):
    courses: list[SeedCourse]


def seed_catalog(catalog: CatalogHandler, seed: SeedFile) -> tuple[int, int, int]:
    """Insert the courses, lessons and enrollments, returns how many of each."""
    n_lessons = 0
    n_enrollments = 0
    for course in seed.courses:
        catalog.add_course(course.id, teacher_id=course.teacher_id, title=course.title)
        for lesson in course.lessons:
            catalog.add_lesson(lesson.id, course_id=course.id, media_id=lesson.media_id, title=lesson.title)
            n_lessons += 1
        for enrollment in course.enrollments:
            catalog.set_enrollment(enrollment.user_id, course.id, status=enrollment.status)
            n_enrollments += 1

    return len(seed.courses), n_lessons, n_enrollments


def main() -> None:
    """Main CLI for catalog seeding."""
    parser = argparse.ArgumentParser(description=f"{PROGRAM_NAME} {__version__} catalog seeding tool.")
    parser.add_argument(
        "seed_file",
        type=Path,
        help="JSON file with a list of courses, each with lessons and enrollments.",
    )
    parser.add_argument(
        "--instance-path",
        type=Path,
        default=DEFAULT_INSTANCE_PATH,
        help="Instance directory holding the database.",
    )
    args = parser.parse_args()

    setup_logger()
    paths = AppPathsHelper(args.instance_path)
    console.print(f"{PROGRAM_NAME} Catalog Seeding Tool v{__version__}")
    console.print(f"Using database file at: {paths.database_file}\n")

    if not args.seed_file.is_file():
        logger.error("No seed file at: %s", args.seed_file)
        sys.exit(1)

    try:
        with args.seed_file.open("r") as f:
            seed = SeedFile.model_validate(json.load(f))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error("Invalid seed file %s: %s", args.seed_file, e)  # noqa: TRY400 Short error for users
        sys.exit(1)

    engine = create_db_engine(paths.database_url)
    init_db(engine)
    n_courses, n_lessons, n_enrollments = seed_catalog(CatalogHandler(engine), seed)
    console.print(f"Seeded {n_courses} course(s), {n_lessons} lesson(s), {n_enrollments} enrollment(s)")
    sys.exit(0)


if __name__ == "__main__":
    main()

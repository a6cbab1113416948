"""Tests for the CapabilityTokenService."""

import logging
import threading
from datetime import timedelta

import jwt
import pytest

from learnova.database.handlers import CatalogHandler, TokenUsageHandler
from learnova.services.capability_token import (
    CapabilityTokenService,
    EntitlementDenied,
    OriginRejected,
    ResourceMismatch,
    ResourceUnavailable,
    SubjectMismatch,
    TokenAlreadyUsed,
    TokenExpired,
    TokenInvalid,
    hash_token,
    normalize_origin,
)
from tests.test_utils.clock import FakeWallClock
from tests.test_utils.identity import SIGNING_KEY

ORIGIN = "https://learnova.example"
TEACHER = "teacher-1"
STUDENT = "student-1"
OUTSIDER = "student-2"
DECODE_OPTIONS = {"verify_exp": False, "verify_iat": False}


@pytest.fixture
def seeded_catalog(catalog: CatalogHandler) -> CatalogHandler:
    catalog.add_course("course-1", teacher_id=TEACHER, title="Algebra")
    catalog.add_lesson("lesson-1", course_id="course-1", media_id="learnova/videos/video_1_a")
    catalog.add_lesson("lesson-2", course_id="course-1", media_id="learnova/videos/video_2_b")
    catalog.add_lesson("lesson-draft", course_id="course-1", media_id=None)
    catalog.add_course("course-2", teacher_id="teacher-2")
    catalog.add_lesson("lesson-other", course_id="course-2", media_id="learnova/videos/video_3_c")
    catalog.set_enrollment(STUDENT, "course-1", status="active")
    catalog.set_enrollment(OUTSIDER, "course-1", status="pending")
    return catalog


@pytest.fixture
def service(
    usage_handler: TokenUsageHandler,
    seeded_catalog: CatalogHandler,
    wall_clock: FakeWallClock,
) -> CapabilityTokenService:
    return CapabilityTokenService(
        SIGNING_KEY,
        usage_handler,
        seeded_catalog,
        ttl=timedelta(minutes=5),
        allowed_origins=[ORIGIN],
        clock=wall_clock,
    )


# region Issue
def test_issue_for_enrolled_student(service: CapabilityTokenService, usage_handler: TokenUsageHandler) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN, request_agent="pytest", request_ip="10.0.0.1")

    assert issued.resource_media_id == "learnova/videos/video_1_a"
    record = usage_handler.get(hash_token(issued.token))
    assert record is not None
    assert record.used_at is None
    assert record.subject_id == STUDENT
    assert record.resource_id == "lesson-1"
    assert record.request_agent == "pytest"
    assert record.request_ip == "10.0.0.1"


def test_issue_for_course_teacher(service: CapabilityTokenService) -> None:
    issued = service.issue(TEACHER, "lesson-2", "course-1", ORIGIN)
    assert issued.token


def test_ttl_is_exact(service: CapabilityTokenService, wall_clock: FakeWallClock) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    payload = jwt.decode(issued.token, SIGNING_KEY, algorithms=["HS256"], options=DECODE_OPTIONS)

    assert payload["exp"] - payload["iat"] == 300
    assert payload["iat"] == int(wall_clock.now.timestamp())
    assert issued.expires_at == wall_clock.now + timedelta(seconds=300)


def test_tokens_for_same_claims_differ(service: CapabilityTokenService) -> None:
    first = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    second = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    assert first.token != second.token


def test_issue_without_entitlement(service: CapabilityTokenService) -> None:
    with pytest.raises(EntitlementDenied):
        service.issue(OUTSIDER, "lesson-1", "course-1", ORIGIN)

    with pytest.raises(EntitlementDenied):
        service.issue("nobody", "lesson-1", "course-1", ORIGIN)


def test_revoked_enrollment_denied(service: CapabilityTokenService, seeded_catalog: CatalogHandler) -> None:
    seeded_catalog.set_enrollment(STUDENT, "course-1", status="revoked")
    with pytest.raises(EntitlementDenied):
        service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)


def test_issue_unavailable_resource(service: CapabilityTokenService) -> None:
    with pytest.raises(ResourceUnavailable):
        service.issue(STUDENT, "lesson-draft", "course-1", ORIGIN)

    with pytest.raises(ResourceUnavailable):
        service.issue(STUDENT, "lesson-missing", "course-1", ORIGIN)

    # Lesson exists, but in another course
    with pytest.raises(ResourceUnavailable):
        service.issue(STUDENT, "lesson-other", "course-1", ORIGIN)


def test_issue_unknown_course(service: CapabilityTokenService) -> None:
    """A missing course is reported as missing, ahead of the entitlement check."""
    with pytest.raises(ResourceUnavailable, match="Course not found"):
        service.issue(OUTSIDER, "lesson-1", "course-missing", ORIGIN)


def test_denied_issue_writes_nothing(
    service: CapabilityTokenService,
    usage_handler: TokenUsageHandler,
    wall_clock: FakeWallClock,
) -> None:
    with pytest.raises(EntitlementDenied):
        service.issue(OUTSIDER, "lesson-1", "course-1", ORIGIN)

    assert usage_handler.purge_expired(older_than=wall_clock.now + timedelta(days=1)) == 0


# region Origin
def test_origin_rejected(service: CapabilityTokenService, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING), pytest.raises(OriginRejected):
        service.issue(STUDENT, "lesson-1", "course-1", "https://evil.example")

    assert "Security" in caplog.text


def test_origin_prefix_attack_rejected(service: CapabilityTokenService) -> None:
    with pytest.raises(OriginRejected):
        service.issue(STUDENT, "lesson-1", "course-1", "https://learnova.example.evil.com/watch")


def test_referer_with_path_accepted(service: CapabilityTokenService) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", "https://learnova.example/courses/course-1/lesson-1")
    assert issued.token


def test_missing_origin(service: CapabilityTokenService) -> None:
    assert service.issue(STUDENT, "lesson-1", "course-1", "").token

    service.strict_origin = True
    with pytest.raises(OriginRejected):
        service.issue(STUDENT, "lesson-1", "course-1", "")


def test_malformed_origin_rejected(service: CapabilityTokenService) -> None:
    with pytest.raises(OriginRejected):
        service.issue(STUDENT, "lesson-1", "course-1", "not a url")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("https://Learnova.example/path?q=1", "https://learnova.example"),
        ("http://localhost:3000/", "http://localhost:3000"),
        ("", ""),
        ("learnova.example", ""),
    ],
)
def test_normalize_origin(value: str, expected: str) -> None:
    assert normalize_origin(value) == expected


# region Verify
def test_verify_once(service: CapabilityTokenService, usage_handler: TokenUsageHandler) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN, email="student@example.com")

    verified = service.verify(issued.token, resource_id="lesson-1", subject_id=STUDENT)

    assert verified.valid
    assert verified.subject_id == STUDENT
    assert verified.resource_id == "lesson-1"
    assert verified.context_id == "course-1"
    assert verified.email == "student@example.com"
    record = usage_handler.get(hash_token(issued.token))
    assert record is not None
    assert record.used_at is not None


def test_verify_replay_rejected(service: CapabilityTokenService, caplog: pytest.LogCaptureFixture) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    service.verify(issued.token, resource_id="lesson-1", subject_id=STUDENT)

    with caplog.at_level(logging.WARNING), pytest.raises(TokenAlreadyUsed):
        service.verify(issued.token, resource_id="lesson-1", subject_id=STUDENT)

    assert "replay" in caplog.text
    assert issued.token not in caplog.text


def test_verify_concurrent_single_winner(service: CapabilityTokenService) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    n_threads = 8
    barrier = threading.Barrier(n_threads)
    outcomes: list[str] = []
    lock = threading.Lock()

    def redeem() -> None:
        barrier.wait()
        try:
            service.verify(issued.token, resource_id="lesson-1", subject_id=STUDENT)
            outcome = "ok"
        except TokenAlreadyUsed:
            outcome = "used"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=redeem) for _ in range(n_threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("used") == n_threads - 1


def test_verify_wrong_resource(service: CapabilityTokenService, usage_handler: TokenUsageHandler) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)

    with pytest.raises(ResourceMismatch):
        service.verify(issued.token, resource_id="lesson-2", subject_id=STUDENT)

    # A mismatch doesn't burn the token
    record = usage_handler.get(hash_token(issued.token))
    assert record is not None
    assert record.used_at is None
    assert service.verify(issued.token, resource_id="lesson-1", subject_id=STUDENT).valid


def test_verify_wrong_subject(service: CapabilityTokenService) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    with pytest.raises(SubjectMismatch):
        service.verify(issued.token, resource_id="lesson-1", subject_id=TEACHER)


def test_verify_expired(service: CapabilityTokenService, wall_clock: FakeWallClock) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)

    wall_clock.advance(300)
    verified = service.verify(issued.token, resource_id="lesson-1", subject_id=STUDENT)
    assert verified.valid

    second = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    wall_clock.advance(301)
    with pytest.raises(TokenExpired):
        service.verify(second.token, resource_id="lesson-1", subject_id=STUDENT)


def test_verify_bad_signature(service: CapabilityTokenService) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    payload = jwt.decode(issued.token, SIGNING_KEY, algorithms=["HS256"], options=DECODE_OPTIONS)
    forged = jwt.encode(payload, "some-other-key-that-is-long-enough-0123", algorithm="HS256")

    with pytest.raises(TokenInvalid):
        service.verify(forged, resource_id="lesson-1", subject_id=STUDENT)

    with pytest.raises(TokenInvalid):
        service.verify("not.a.token", resource_id="lesson-1", subject_id=STUDENT)


def test_verify_tampered_claims(service: CapabilityTokenService) -> None:
    issued = service.issue(STUDENT, "lesson-1", "course-1", ORIGIN)
    header, _, signature = issued.token.split(".")
    payload = jwt.decode(issued.token, SIGNING_KEY, algorithms=["HS256"], options=DECODE_OPTIONS)
    payload["lesson_id"] = "lesson-2"
    _, tampered_payload, _ = jwt.encode(payload, "x" * 32, algorithm="HS256").split(".")

    with pytest.raises(TokenInvalid):
        service.verify(f"{header}.{tampered_payload}.{signature}", resource_id="lesson-2", subject_id=STUDENT)


def test_verify_signed_but_unrecorded(service: CapabilityTokenService, wall_clock: FakeWallClock) -> None:
    """A token signed with our key that was never issued is not accepted."""
    now = int(wall_clock.now.timestamp())
    payload = {
        "sub": STUDENT,
        "lesson_id": "lesson-1",
        "course_id": "course-1",
        "iat": now,
        "exp": now + 300,
        "jti": "never-issued",
    }
    token = jwt.encode(payload, SIGNING_KEY, algorithm="HS256")

    with pytest.raises(TokenInvalid):
        service.verify(token, resource_id="lesson-1", subject_id=STUDENT)


def test_empty_signing_key_refused(usage_handler: TokenUsageHandler, catalog: CatalogHandler) -> None:
    with pytest.raises(ValueError, match="signing key"):
        CapabilityTokenService("", usage_handler, catalog)

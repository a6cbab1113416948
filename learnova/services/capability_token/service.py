"""Issue and redeem single-use playback capability tokens."""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Self
from urllib.parse import urlsplit

import jwt
from pydantic import ValidationError

from learnova.database.models import TokenUsageRecord
from learnova.utils.logger import get_logger

from .errors import (
    EntitlementDenied,
    OriginRejected,
    ResourceMismatch,
    ResourceUnavailable,
    SubjectMismatch,
    TokenAlreadyUsed,
    TokenExpired,
    TokenInvalid,
)
from .models import Claims, IssuedToken, VerifiedClaims

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from learnova.core.config import LearnovaConf
    from learnova.database.handlers import CatalogHandler, TokenUsageHandler
else:
    Callable = object
    Iterable = object
    LearnovaConf = object
    CatalogHandler = object
    TokenUsageHandler = object

logger = get_logger(__name__)

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "lesson_id", "course_id", "iat", "exp", "jti"]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def hash_token(token: str) -> str:
    """One-way hash of a token, the only form in which a token is stored."""
    return hashlib.sha256(token.encode()).hexdigest()


def normalize_origin(value: str | None) -> str:
    """Reduce an Origin or Referer header to scheme://host[:port], empty if unusable."""
    if not value:
        return ""

    parts = urlsplit(value.strip())
    if not parts.scheme or not parts.netloc:
        return ""

    return f"{parts.scheme}://{parts.netloc}".lower()


class CapabilityTokenService:
    """Gatekeeper between "entitled to a lesson" and "may play the lesson's video once"."""

    def __init__(
        self,
        signing_key: str,
        usage_handler: TokenUsageHandler,
        catalog: CatalogHandler,
        *,
        ttl: timedelta = timedelta(minutes=5),
        allowed_origins: Iterable[str] = (),
        strict_origin: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the service, the signing key is fixed for the life of the process."""
        if not signing_key:
            msg = "A signing key is required for capability tokens"
            raise ValueError(msg)

        self._signing_key = signing_key
        self._usage = usage_handler
        self._catalog = catalog
        self.ttl_seconds = int(ttl.total_seconds())
        self.allowed_origins = {normalize_origin(origin) for origin in allowed_origins} - {""}
        self.strict_origin = strict_origin
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: LearnovaConf,
        usage_handler: TokenUsageHandler,
        catalog: CatalogHandler,
    ) -> Self:
        return cls(
            signing_key=settings.SECRET_KEY,
            usage_handler=usage_handler,
            catalog=catalog,
            ttl=timedelta(seconds=settings.tokens.ttl_seconds),
            allowed_origins=settings.tokens.allowed_origins,
            strict_origin=settings.tokens.strict_origin,
        )

    # region Issue
    def check_origin(self, origin: str) -> str:
        """Validate the requesting origin, returns it normalized.

        A missing origin passes unless strict_origin is set, non-browser
        callers don't send one.
        """
        normalized = normalize_origin(origin)
        if not normalized:
            if origin or self.strict_origin:
                msg = "Requests must come from an allowed origin"
                raise OriginRejected(msg)
            return ""

        if normalized not in self.allowed_origins:
            logger.warning("Security: token requested from disallowed origin %s", normalized)
            msg = "Access denied: Invalid domain"
            raise OriginRejected(msg)

        return normalized

    def issue(
        self,
        subject_id: str,
        resource_id: str,
        context_id: str,
        origin: str = "",
        *,
        request_agent: str = "",
        request_ip: str = "",
        email: str = "",
    ) -> IssuedToken:
        """Mint a token for one playback of a lesson by one viewer."""
        if not self._catalog.course_exists(context_id):
            msg = "Course not found"
            raise ResourceUnavailable(msg)

        if not self._catalog.is_entitled(subject_id, context_id):
            logger.info("Token refused, %s is not entitled to course %s", subject_id, context_id)
            msg = "Access denied: No active enrollment found"
            raise EntitlementDenied(msg)

        lesson = self._catalog.get_playable_lesson(resource_id, context_id)
        if lesson is None or lesson.media_id is None:
            msg = "Lesson not found or no video available"
            raise ResourceUnavailable(msg)

        normalized_origin = self.check_origin(origin)

        issued_at = int(self._clock().timestamp())
        expires_at = issued_at + self.ttl_seconds
        claims = Claims(
            sub=subject_id,
            lesson_id=resource_id,
            course_id=context_id,
            origin=normalized_origin,
            email=email,
            iat=issued_at,
            exp=expires_at,
            jti=secrets.token_hex(8),
        )
        token = jwt.encode(claims.model_dump(), self._signing_key, algorithm=ALGORITHM)

        self._usage.create(
            TokenUsageRecord(
                token_hash=hash_token(token),
                resource_id=resource_id,
                subject_id=subject_id,
                context_id=context_id,
                issued_at=datetime.fromtimestamp(issued_at, tz=UTC),
                expires_at=datetime.fromtimestamp(expires_at, tz=UTC),
                request_origin=normalized_origin,
                request_agent=request_agent,
                request_ip=request_ip,
            )
        )

        logger.debug("Issued token for %s on lesson %s, expires %d", subject_id, resource_id, expires_at)
        return IssuedToken(
            token=token,
            expires_at=datetime.fromtimestamp(expires_at, tz=UTC),
            resource_media_id=lesson.media_id,
        )

    # region Verify
    def decode(self, token: str) -> Claims:
        """Check the signature and shape of a token, expiry is not checked here."""
        try:
            payload = jwt.decode(
                token,
                self._signing_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
            )
            return Claims.model_validate(payload)
        except (jwt.InvalidTokenError, ValidationError) as e:
            logger.debug("Token rejected: %s", type(e).__name__)
            msg = "Invalid token"
            raise TokenInvalid(msg) from e

    def verify(self, token: str, resource_id: str, subject_id: str) -> VerifiedClaims:
        """Redeem a token for a lesson, succeeds at most once per token."""
        claims = self.decode(token)
        token_hash = hash_token(token)
        now = self._clock()

        if now.timestamp() > claims.exp:
            msg = "Token expired"
            raise TokenExpired(msg)

        if claims.lesson_id != resource_id:
            logger.warning(
                "Security: token %s for lesson %s presented for lesson %s",
                token_hash[:12],
                claims.lesson_id,
                resource_id,
            )
            msg = "Token mismatch"
            raise ResourceMismatch(msg)

        if claims.sub != subject_id:
            logger.warning(
                "Security: token %s issued to %s presented by %s",
                token_hash[:12],
                claims.sub,
                subject_id,
            )
            msg = "Token mismatch"
            raise SubjectMismatch(msg)

        if not self._usage.mark_used(token_hash, used_at=now):
            if self._usage.get(token_hash) is None:
                logger.warning("Security: validly signed token %s has no usage record", token_hash[:12])
                msg = "Invalid token"
                raise TokenInvalid(msg)

            logger.warning(
                "Security: replay of token %s by %s for lesson %s",
                token_hash[:12],
                subject_id,
                resource_id,
            )
            msg = "Token already used"
            raise TokenAlreadyUsed(msg)

        return VerifiedClaims(
            subject_id=claims.sub,
            resource_id=claims.lesson_id,
            context_id=claims.course_id,
            origin=claims.origin,
            email=claims.email,
            issued_at=datetime.fromtimestamp(claims.iat, tz=UTC),
            expires_at=datetime.fromtimestamp(claims.exp, tz=UTC),
            used_at=now,
        )

"""Single-use, lesson-bound playback capability tokens."""

from .errors import (
    CapabilityTokenError,
    EntitlementDenied,
    InvalidSignature,
    OriginRejected,
    ResourceMismatch,
    ResourceUnavailable,
    SubjectMismatch,
    TokenAlreadyUsed,
    TokenExpired,
    TokenInvalid,
)
from .janitor import TokenUsageJanitor
from .models import Claims, IssuedToken, VerifiedClaims
from .service import CapabilityTokenService, hash_token, normalize_origin

__all__ = [
    "CapabilityTokenError",
    "CapabilityTokenService",
    "Claims",
    "EntitlementDenied",
    "InvalidSignature",
    "IssuedToken",
    "OriginRejected",
    "ResourceMismatch",
    "ResourceUnavailable",
    "SubjectMismatch",
    "TokenAlreadyUsed",
    "TokenExpired",
    "TokenInvalid",
    "TokenUsageJanitor",
    "VerifiedClaims",
    "hash_token",
    "normalize_origin",
]

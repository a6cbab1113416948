"""Capability token exceptions, one per recovery action the client can take."""


class CapabilityTokenError(Exception):
    """Base class for capability token failures."""

    reason = "token_error"


# region Issuance
class EntitlementDenied(CapabilityTokenError):
    """The subject neither teaches nor is actively enrolled in the course."""

    reason = "entitlement_denied"


class ResourceUnavailable(CapabilityTokenError):
    """The lesson doesn't exist in the course or has no playable media."""

    reason = "resource_unavailable"


class OriginRejected(CapabilityTokenError):
    """The requesting origin is not on the allow-list."""

    reason = "origin_rejected"


# region Verification
class TokenInvalid(CapabilityTokenError):
    """Bad signature, malformed token or unknown token, never retryable with the same token."""

    reason = "token_invalid"


InvalidSignature = TokenInvalid


class TokenExpired(CapabilityTokenError):
    """Past its expiry, ask for a new token."""

    reason = "token_expired"


class ResourceMismatch(CapabilityTokenError):
    """The token was minted for a different lesson."""

    reason = "resource_mismatch"


class SubjectMismatch(CapabilityTokenError):
    """The token was minted for a different viewer."""

    reason = "subject_mismatch"


class TokenAlreadyUsed(CapabilityTokenError):
    """The token was already redeemed, possible replay."""

    reason = "token_already_used"

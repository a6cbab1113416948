"""Models for playback capability tokens."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Claims(BaseModel):
    """Claims signed into a capability token."""

    sub: str  # Viewer
    lesson_id: str  # Resource
    course_id: str  # Context
    origin: str = ""
    email: str = ""
    iat: int
    exp: int
    jti: str


class IssuedToken(BaseModel):
    """A freshly signed token, what the issue endpoint returns."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str
    expires_at: datetime
    resource_media_id: str


class VerifiedClaims(BaseModel):
    """Decoded claims for the verify endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    valid: bool = True
    subject_id: str
    resource_id: str
    context_id: str
    origin: str
    email: str
    issued_at: datetime
    expires_at: datetime
    used_at: datetime

"""Use-once record for playback capability tokens."""

from datetime import datetime

from sqlmodel import Field, SQLModel


class TokenUsageRecord(SQLModel, table=True):
    """Keyed by the SHA-256 of the token, the token itself is never stored."""

    __tablename__ = "token_usage"
    token_hash: str = Field(max_length=64, primary_key=True, nullable=False)
    resource_id: str = Field(index=True, nullable=False)
    subject_id: str = Field(index=True, nullable=False)
    context_id: str = Field(nullable=False)
    issued_at: datetime = Field(nullable=False)
    expires_at: datetime = Field(index=True, nullable=False)
    used_at: datetime | None = Field(default=None, nullable=True)
    request_origin: str = Field(default="", nullable=False)
    request_agent: str = Field(default="", nullable=False)
    request_ip: str = Field(default="", nullable=False)

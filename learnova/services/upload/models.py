"""Models for the upload pipeline."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .errors import MediaHostError


class UploadResult(BaseModel):
    """What a finished upload gives back to the producer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    secure_url: str
    media_id: str
    duration_seconds: float | None = None
    derived_variants: list[str] = []
    account_id: str = ""

    @classmethod
    def from_media_host(cls, response: dict[str, Any], account_id: str, derived_variants: list[str]) -> Self:
        """Build from the media host's final chunk response."""
        secure_url = response.get("secure_url")
        media_id = response.get("public_id")
        if not secure_url or not media_id:
            msg = "Media host response is missing secure_url or public_id"
            raise MediaHostError(msg)

        return cls(
            secure_url=secure_url,
            media_id=media_id,
            duration_seconds=response.get("duration"),
            derived_variants=derived_variants,
            account_id=account_id,
        )


class UploadStatus(BaseModel):
    """Readiness of the upload endpoint."""

    status: str
    error: str | None = None
    accounts: list[str] = []
    healthy_accounts: int = 0
    max_file_size: str = ""
    chunk_size: str = ""
    max_file_size_bytes: int = 0
    chunk_size_bytes: int = 0

"""Generic API models."""

from pydantic import BaseModel
from pydantic_core import ErrorDetails


class MessageResponseModel(BaseModel):
    """Generic API response message model."""

    message: str
    reason: str | None = None  # Machine readable failure kind
    errors: list[str] | list[ErrorDetails] | None = None


def error_detail(message: str, reason: str) -> dict[str, str]:
    """HTTPException detail body, HTTPException can't serialise models itself."""
    return MessageResponseModel(message=message, reason=reason).model_dump(exclude_none=True)

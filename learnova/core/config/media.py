"""Media host configuration, accounts and upload limits."""

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, SecretStr, field_validator

from learnova.constants import (
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_MAX_UPLOAD_BYTES,
    MAX_MEDIA_ACCOUNTS,
    MIN_CHUNK_SIZE_BYTES,
)
from learnova.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_EAGER_TRANSFORMATIONS = [
    "w_720,h_480,c_scale,f_mp4",
    "w_1280,h_720,c_scale,f_mp4",
]


class MediaAccountConf(BaseModel):
    """One set of media host credentials, as it appears in the config file."""

    model_config = ConfigDict(extra="ignore")

    account_id: str = ""
    auth_key: str = ""
    auth_secret: SecretStr = SecretStr("")
    # Read from the CLOUDINARY_* variables, never written back to the config file
    from_env: bool = Field(default=False, exclude=True)


class MediaConf(BaseModel):
    """Media host and upload pipeline configuration."""

    model_config = ConfigDict(extra="ignore")

    accounts: list[MediaAccountConf] = []
    api_base_url: HttpUrl = HttpUrl("https://api.cloudinary.com/v1_1")
    folder: str = "learnova/videos"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    chunk_size_bytes: int = DEFAULT_CHUNK_SIZE_BYTES
    chunk_retries: int = 3
    request_timeout: float = 120
    eager_transformations: list[str] = DEFAULT_EAGER_TRANSFORMATIONS

    @field_validator("accounts", mode="after")
    @classmethod
    def validate_accounts(cls, value: list[MediaAccountConf]) -> list[MediaAccountConf]:
        """Only the first few accounts are used."""
        if len(value) > MAX_MEDIA_ACCOUNTS:
            logger.warning(
                "%d media accounts configured, only the first %d will be used",
                len(value),
                MAX_MEDIA_ACCOUNTS,
            )
            value = value[:MAX_MEDIA_ACCOUNTS]
        return value

    @field_validator("chunk_size_bytes", mode="after")
    @classmethod
    def validate_chunk_size(cls, value: int) -> int:
        """The media host needs chunks of at least 5MiB, except for the last one."""
        if value < MIN_CHUNK_SIZE_BYTES:
            logger.warning(
                "chunk_size_bytes '%d' is below the minimum of %d, setting to default of %d",
                value,
                MIN_CHUNK_SIZE_BYTES,
                DEFAULT_CHUNK_SIZE_BYTES,
            )
            value = DEFAULT_CHUNK_SIZE_BYTES
        return value

    @field_validator("max_upload_bytes", mode="after")
    @classmethod
    def validate_max_upload_bytes(cls, value: int) -> int:
        """A non positive ceiling would reject everything."""
        if value <= 0:
            logger.warning(
                "max_upload_bytes '%d' must be positive, setting to default of %d",
                value,
                DEFAULT_MAX_UPLOAD_BYTES,
            )
            value = DEFAULT_MAX_UPLOAD_BYTES
        return value

    @field_validator("chunk_retries", mode="after")
    @classmethod
    def validate_chunk_retries(cls, value: int) -> int:
        if value < 1:
            logger.warning("chunk_retries '%d' must be at least 1, setting to 1", value)
            value = 1
        return value

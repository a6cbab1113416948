"""Configuration for playback tokens, the identity provider and the account pool."""

from pydantic import BaseModel, ConfigDict, field_validator

from learnova.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 5 * 60
DEFAULT_ALLOWED_ORIGINS = [
    "https://learnova-platform.vercel.app",
    "http://localhost:3000",
    "http://localhost:5173",
]


class TokenConf(BaseModel):
    """Capability token configuration."""

    model_config = ConfigDict(extra="ignore")

    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    allowed_origins: list[str] = DEFAULT_ALLOWED_ORIGINS
    strict_origin: bool = False  # Reject requests that carry no origin at all
    usage_retention_seconds: int = 60 * 60
    janitor_interval_seconds: int = 10 * 60

    @field_validator("ttl_seconds", mode="after")
    @classmethod
    def validate_ttl(cls, value: int) -> int:
        """Validate the token time to live."""
        if value <= 0:
            logger.warning(
                "tokens.ttl_seconds '%d' must be positive, setting to default of %d",
                value,
                DEFAULT_TOKEN_TTL_SECONDS,
            )
            value = DEFAULT_TOKEN_TTL_SECONDS
        return value

    @field_validator("allowed_origins", mode="after")
    @classmethod
    def validate_allowed_origins(cls, value: list[str]) -> list[str]:
        """Drop blanks and trailing slashes."""
        return [origin.strip().rstrip("/") for origin in value if origin.strip()]


class PoolConf(BaseModel):
    """Credential pool health policy."""

    model_config = ConfigDict(extra="ignore")

    cooldown_seconds: float = 5 * 60
    failure_threshold: int = 3

    @field_validator("failure_threshold", mode="after")
    @classmethod
    def validate_failure_threshold(cls, value: int) -> int:
        if value < 1:
            logger.warning("pool.failure_threshold '%d' must be at least 1, setting to 3", value)
            value = 3
        return value


class IdentityConf(BaseModel):
    """The external identity provider that issues bearer tokens."""

    model_config = ConfigDict(extra="ignore")

    jwt_secret: str = ""
    audience: str | None = "authenticated"
    algorithm: str = "HS256"
    teacher_role_claim: str = "role"
    teacher_role_value: str = "teacher"

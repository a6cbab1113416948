"""Config loading, setup, validating, writing."""

import json
import os
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Annotated, Any, Literal, Self

from pydantic import (
    AnyUrl,
    BeforeValidator,
    SecretStr,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from learnova.constants import DEFAULT_INSTANCE_PATH, ENV_PREFIX, MAX_MEDIA_ACCOUNTS, TESTING_ENV_VAR
from learnova.services.app_paths_helper import SETTINGS_FILE_NAME, AppPathsHelper
from learnova.utils.logger import LoggingConf, get_logger

from .access import IdentityConf, PoolConf, TokenConf
from .media import MediaAccountConf, MediaConf

if TYPE_CHECKING:
    from pathlib import Path
else:
    Path = object

logger = get_logger(__name__)

__all__ = [
    "IdentityConf",
    "LearnovaConf",
    "MediaAccountConf",
    "MediaConf",
    "PoolConf",
    "TokenConf",
]

LEGACY_ACCOUNT_ENV_TEMPLATE = (
    "CLOUDINARY_CLOUD_NAME_{n}",
    "CLOUDINARY_API_KEY_{n}",
    "CLOUDINARY_API_SECRET_{n}",
)


def parse_cors(v: Any) -> list[str] | str:  # noqa: ANN401 JSON things
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    if isinstance(v, list | str):
        return v
    raise ValueError(v)


def read_legacy_account_env() -> list[MediaAccountConf]:
    """Read the numbered CLOUDINARY_* environment variables, 1 through 5."""
    accounts = []
    for n in range(1, MAX_MEDIA_ACCOUNTS + 1):
        name_var, key_var, secret_var = (template.format(n=n) for template in LEGACY_ACCOUNT_ENV_TEMPLATE)
        account_id = os.getenv(name_var, "")
        auth_key = os.getenv(key_var, "")
        auth_secret = os.getenv(secret_var, "")
        if account_id or auth_key or auth_secret:
            accounts.append(
                MediaAccountConf(
                    account_id=account_id,
                    auth_key=auth_key,
                    auth_secret=SecretStr(auth_secret),
                    from_env=True,
                )
            )

    return accounts


class LearnovaConf(BaseSettings):
    """Settings Definition."""

    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env" if not os.getenv(TESTING_ENV_VAR) else None,
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        json_file=DEFAULT_INSTANCE_PATH / SETTINGS_FILE_NAME,
    )

    media: MediaConf = MediaConf()
    pool: PoolConf = PoolConf()
    tokens: TokenConf = TokenConf()
    identity: IdentityConf = IdentityConf()
    logging: LoggingConf = LoggingConf()
    FRONTEND_HOST: str = ""
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    EXTERNAL_URL: str = "http://localhost:5100"
    SECRET_KEY: str = ""
    BACKEND_CORS_ORIGINS: Annotated[list[AnyUrl] | str, BeforeValidator(parse_cors)] = []

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003 Don't use but must include.
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Specify the priority of settings sources."""
        if os.getenv(TESTING_ENV_VAR):
            return (
                init_settings,
                env_settings,
                JsonConfigSettingsSource(settings_cls),
            )
        return (  # pragma: no cover
            init_settings,
            dotenv_settings,
            env_settings,
            JsonConfigSettingsSource(settings_cls),
        )

    @field_validator("EXTERNAL_URL", mode="after")
    @classmethod
    def validate_external_url(cls, value: str) -> str:
        """Ensure EXTERNAL_URL does not end with a slash."""
        return value.rstrip("/")

    @field_validator("SECRET_KEY", mode="before")
    @classmethod
    def validate_secret_key(cls, value: str | None) -> str:
        """Generate a signing key if one is not set, tokens will not survive a restart."""
        if not value or value.strip() == "":
            logger.warning("SECRET_KEY is not set, generating one, playback tokens will not survive a restart")
            value = secrets.token_urlsafe(32)
        return value

    @model_validator(mode="after")
    def load_legacy_accounts(self) -> Self:
        """Fall back to the numbered CLOUDINARY_* variables when no accounts are configured."""
        if not self.media.accounts:
            legacy_accounts = read_legacy_account_env()
            if legacy_accounts:
                logger.info("Loaded %d media account(s) from CLOUDINARY_* variables", len(legacy_accounts))
                self.media.accounts = legacy_accounts[:MAX_MEDIA_ACCOUNTS]
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        origins = [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]
        if self.FRONTEND_HOST:
            origins.append(self.FRONTEND_HOST)
        return origins

    def write_backup_config(
        self,
        config_path: Path,
        existing_data: Any,  # noqa: ANN401
        reason: str = "Validation has changed the config file",
    ) -> None:
        time_str = datetime.now(tz=UTC).strftime("%Y-%m-%d_%H%M%S")
        config_backup_dir = config_path.parent / "config_backups"
        config_backup_dir.mkdir(parents=True, exist_ok=True)
        backup_file = config_backup_dir / f"{config_path.stem}_{time_str}{config_path.suffix}.bak"
        logger.warning(
            "%s, backing up the old one to %s",
            reason,
            backup_file,
        )
        with backup_file.open("w") as f:
            f.write(json.dumps(existing_data))

    def write_config(self, config_path: Path | None = None) -> None:
        """Write the current settings to a JSON file, secrets included."""
        if config_path is None:
            config_path = AppPathsHelper(DEFAULT_INSTANCE_PATH).settings_file

        config_path.parent.mkdir(parents=True, exist_ok=True)

        config_data = self.dump_with_secrets()

        if not config_path.exists():
            logger.warning("Writing fresh config file at %s", config_path.absolute())
            existing_data = config_data
        else:
            with config_path.open("r") as f:
                existing_data = json.load(f)

        if existing_data != config_data:  # The new object will be valid, so we back up the old one
            self.write_backup_config(config_path, existing_data)

        with config_path.open("w") as f:
            f.write(json.dumps(config_data, indent=2))

        logger.info("Config write complete")

    def dump_with_secrets(self) -> dict[str, Any]:
        """Dump the settings as JSON compatible data, revealing SecretStr values.

        Accounts that came from the CLOUDINARY_* variables are left out, so a rotated
        secret in the environment is picked up on the next start.
        """
        config_data = json.loads(self.model_dump_json(exclude={"all_cors_origins"}))
        config_data["media"]["accounts"] = [
            {
                "account_id": account.account_id,
                "auth_key": account.auth_key,
                "auth_secret": account.auth_secret.get_secret_value(),
            }
            for account in self.media.accounts
            if not account.from_env
        ]
        return config_data

    @classmethod
    def force_load_config_file(cls, config_path: Path) -> Self:
        """Load the configuration file. File contents takes precedence over env vars."""
        if not config_path.exists() or not config_path.is_file():
            logger.warning(
                "Config file %s does not exist, loading defaults",
                config_path.absolute(),
            )
            return cls()

        logger.info("Loading config from %s", config_path.absolute())
        with config_path.open("r") as f:
            config = json.load(f)

        return cls(**config)

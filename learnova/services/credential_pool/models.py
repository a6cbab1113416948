"""Models for the credential pool."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr

HealthState = Literal["healthy", "degraded", "quarantined"]


class Credential(BaseModel):
    """One media host account, immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    auth_key: str
    auth_secret: SecretStr


@dataclass
class AccountHealth:
    """Mutable health bookkeeping for one credential, guarded by the pool lock."""

    failure_count: int = 0
    last_failure_time: float | None = None  # Pool clock, monotonic
    last_failure_at: datetime | None = None  # Wall clock, for humans
    last_failure_reason: str = ""
    total_failures: int = 0
    total_successes: int = 0


class AccountStatusForAPI(BaseModel):
    """Health of one account without any of its secrets."""

    account_id: str
    state: HealthState
    failure_count: int
    last_failure_at: datetime | None
    last_failure_reason: str
    total_failures: int
    total_successes: int


class CredentialPoolStatus(BaseModel):
    """Model for the pool status API response."""

    size: int
    healthy_count: int
    accounts: list[AccountStatusForAPI]

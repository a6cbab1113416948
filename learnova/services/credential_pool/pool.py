"""Credential pool, selects a media host account for each operation."""

import threading
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Self

from learnova.utils.logger import get_logger

from .errors import ConfigurationError
from .models import AccountHealth, AccountStatusForAPI, Credential, CredentialPoolStatus, HealthState

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from learnova.core.config import MediaAccountConf, MediaConf, PoolConf
else:
    Callable = object
    Iterable = object
    MediaAccountConf = object
    MediaConf = object
    PoolConf = object

logger = get_logger(__name__)

PLACEHOLDER_MARKERS = ("your_cloud_name", "your_api_key", "your_api_secret")
PLACEHOLDER_PREFIX = "your_"


def _is_placeholder(value: str) -> bool:
    value = value.strip().lower()
    if value == "":
        return True
    return value.startswith(PLACEHOLDER_PREFIX) or any(marker in value for marker in PLACEHOLDER_MARKERS)


class CredentialPool:
    """A fixed set of media host accounts to distribute uploads across.

    The pool never raises once it is loaded. Selection always returns some
    credential, health reports are absorbed, the only fatal condition is an
    empty pool at load time.
    """

    def __init__(
        self,
        credentials: list[Credential],
        *,
        cooldown: float = 300,
        failure_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the pool, prefer CredentialPool.load which validates the candidates."""
        if not credentials:
            msg = "No valid media host credentials configured"
            raise ConfigurationError(msg)

        self._credentials = tuple(credentials)
        self._health: dict[str, AccountHealth] = {
            credential.account_id: AccountHealth() for credential in self._credentials
        }
        self._cursor = 0
        self._lock = threading.Lock()
        self._clock = clock
        self.cooldown = cooldown
        self.failure_threshold = failure_threshold

    @classmethod
    def load(
        cls,
        candidates: Iterable[MediaAccountConf],
        *,
        cooldown: float = 300,
        failure_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> Self:
        """Build a pool from config candidates, dropping incomplete or placeholder accounts."""
        accepted: list[Credential] = []
        seen_account_ids: set[str] = set()

        for n, candidate in enumerate(candidates, start=1):
            auth_secret = candidate.auth_secret.get_secret_value()
            if any(_is_placeholder(value) for value in (candidate.account_id, candidate.auth_key, auth_secret)):
                logger.warning("Skipping media account #%d, missing or placeholder credentials", n)
                continue

            if candidate.account_id in seen_account_ids:
                logger.warning("Skipping media account #%d, duplicate account id %s", n, candidate.account_id)
                continue

            seen_account_ids.add(candidate.account_id)
            accepted.append(
                Credential(
                    account_id=candidate.account_id,
                    auth_key=candidate.auth_key,
                    auth_secret=candidate.auth_secret,
                )
            )

        if not accepted:
            msg = "No valid media host accounts configured, check media.accounts or the CLOUDINARY_* variables"
            raise ConfigurationError(msg)

        logger.info("Loaded %d valid media account(s)", len(accepted))
        return cls(accepted, cooldown=cooldown, failure_threshold=failure_threshold, clock=clock)

    @classmethod
    def from_settings(cls, media: MediaConf, pool: PoolConf) -> Self:
        """Build a pool from the app settings."""
        return cls.load(
            media.accounts,
            cooldown=pool.cooldown_seconds,
            failure_threshold=pool.failure_threshold,
        )

    @property
    def credentials(self) -> tuple[Credential, ...]:
        return self._credentials

    def __len__(self) -> int:
        return len(self._credentials)

    # region Health
    def _is_healthy_locked(self, credential: Credential) -> bool:
        health = self._health.get(credential.account_id)
        if health is None:
            return False

        if health.failure_count == 0 or health.last_failure_time is None:
            return True

        return self._clock() - health.last_failure_time > self.cooldown

    def _healthy_or_all_locked(self) -> list[Credential]:
        healthy = [credential for credential in self._credentials if self._is_healthy_locked(credential)]
        return healthy or list(self._credentials)

    def _state_locked(self, credential: Credential) -> HealthState:
        health = self._health[credential.account_id]
        if self._is_healthy_locked(credential):
            return "healthy"
        if health.failure_count >= self.failure_threshold:
            return "quarantined"
        return "degraded"

    def is_healthy(self, credential: Credential) -> bool:
        """Healthy with no failures, or once the cool-down since the last failure has passed."""
        with self._lock:
            return self._is_healthy_locked(credential)

    def report_failure(self, credential: Credential, reason: str) -> None:
        """Record a failed operation against a credential."""
        with self._lock:
            health = self._health.get(credential.account_id)
            if health is None:
                logger.error("Failure reported for unknown media account %s", credential.account_id)
                return

            health.failure_count += 1
            health.total_failures += 1
            health.last_failure_time = self._clock()
            health.last_failure_at = datetime.now(tz=UTC)
            health.last_failure_reason = reason
            failure_count = health.failure_count

        if failure_count == self.failure_threshold:
            logger.warning(
                "Media account %s quarantined after %d consecutive failures: %s",
                credential.account_id,
                failure_count,
                reason,
            )
        else:
            logger.warning(
                "Media account %s failed (%d consecutive): %s",
                credential.account_id,
                failure_count,
                reason,
            )

    def report_success(self, credential: Credential) -> None:
        """Reset the failure count of a credential."""
        with self._lock:
            health = self._health.get(credential.account_id)
            if health is None:
                logger.error("Success reported for unknown media account %s", credential.account_id)
                return

            if health.failure_count:
                logger.info("Media account %s recovered", credential.account_id)

            health.failure_count = 0
            health.last_failure_time = None
            health.total_successes += 1

    # region Selection
    def select_for_operation(self) -> Credential:
        """Round robin among healthy accounts, the cursor advances over the full list."""
        with self._lock:
            candidates = self._healthy_or_all_locked()
            selected = candidates[self._cursor % len(candidates)]
            self._cursor = (self._cursor + 1) % len(self._credentials)

        logger.debug("Selected media account %s", selected.account_id)
        return selected

    def next_candidate(self, excluding: Credential) -> Credential:
        """Failover target, the first healthy account that isn't excluded, else the next one in sequence."""
        with self._lock:
            candidates = [
                credential
                for credential in self._healthy_or_all_locked()
                if credential.account_id != excluding.account_id
            ]
            if candidates:
                return candidates[0]

            account_ids = [credential.account_id for credential in self._credentials]
            try:
                current_index = account_ids.index(excluding.account_id)
            except ValueError:
                current_index = -1

            return self._credentials[(current_index + 1) % len(self._credentials)]

    # region API
    def get_health(self, credential: Credential) -> AccountHealth:
        """Get a copy of the health record for a credential."""
        with self._lock:
            health = self._health[credential.account_id]
            return AccountHealth(**vars(health))

    def status(self) -> CredentialPoolStatus:
        """Pool status for the API, account ids only."""
        with self._lock:
            accounts = [
                AccountStatusForAPI(
                    account_id=credential.account_id,
                    state=self._state_locked(credential),
                    failure_count=self._health[credential.account_id].failure_count,
                    last_failure_at=self._health[credential.account_id].last_failure_at,
                    last_failure_reason=self._health[credential.account_id].last_failure_reason,
                    total_failures=self._health[credential.account_id].total_failures,
                    total_successes=self._health[credential.account_id].total_successes,
                )
                for credential in self._credentials
            ]

        return CredentialPoolStatus(
            size=len(accounts),
            healthy_count=len([account for account in accounts if account.state == "healthy"]),
            accounts=accounts,
        )

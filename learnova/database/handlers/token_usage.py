"""Handler for the token usage table."""

from typing import TYPE_CHECKING

from sqlalchemy import delete, update
from sqlmodel import col, select

from learnova.database.models import TokenUsageRecord
from learnova.utils.logger import get_logger

from .base import BaseDatabaseHandler

if TYPE_CHECKING:
    from datetime import datetime
else:
    datetime = object

logger = get_logger(__name__)


class TokenUsageHandler(BaseDatabaseHandler):
    """Database handler for capability token usage records."""

    def create(self, record: TokenUsageRecord) -> None:
        """Insert a fresh record, used_at is always None at issuance."""
        record.used_at = None
        with self._get_session() as session:
            session.add(record)
            session.commit()

    def get(self, token_hash: str) -> TokenUsageRecord | None:
        """Get a record by token hash."""
        with self._get_session() as session:
            return session.exec(select(TokenUsageRecord).where(TokenUsageRecord.token_hash == token_hash)).first()

    def mark_used(self, token_hash: str, used_at: datetime) -> bool:
        """Stamp used_at if it is still empty, True only for the caller that stamped it.

        This is one conditional UPDATE so that concurrent verifications of the
        same token can't both win.
        """
        statement = (
            update(TokenUsageRecord)
            .where(col(TokenUsageRecord.token_hash) == token_hash)
            .where(col(TokenUsageRecord.used_at).is_(None))
            .values(used_at=used_at)
        )
        with self._get_session() as session:
            result = session.exec(statement)  # type: ignore[call-overload]
            session.commit()
            return result.rowcount == 1

    def purge_expired(self, older_than: datetime) -> int:
        """Delete records that expired before the cut-off, returns how many."""
        statement = delete(TokenUsageRecord).where(col(TokenUsageRecord.expires_at) < older_than)
        with self._get_session() as session:
            result = session.exec(statement)  # type: ignore[call-overload]
            session.commit()
            deleted = result.rowcount

        if deleted:
            logger.info("Purged %d expired token usage record(s)", deleted)
        return deleted

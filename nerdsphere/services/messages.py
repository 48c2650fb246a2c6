"""
Message submission and feed queries.
"""
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nerdsphere.core.clock import Clock, to_naive_utc, utcnow
from nerdsphere.core.config import Settings, get_settings
from nerdsphere.core.errors import ChatError, MissingFieldError, StoreUnavailableError
from nerdsphere.core.logging import get_logger
from nerdsphere.core.metrics import record_rejection, record_submission
from nerdsphere.core.rate_limit import FingerprintLocks, ServerRateLimiter
from nerdsphere.core.sanitize import sanitize_content
from nerdsphere.core.validation import validate_content
from nerdsphere.models.message import Message

logger = get_logger(__name__)

# Shared by every request handled by this process
fingerprint_locks = FingerprintLocks()


class MessageService:
    """Validates, rate limits and persists chat messages."""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
        locks: FingerprintLocks = fingerprint_locks,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock
        self.locks = locks
        self.rate_limiter = ServerRateLimiter(self.settings.rate_limit_window)

    def submit(self, content: Optional[str], fingerprint: Optional[str]) -> Message:
        """
        Store one message and return the persisted row.

        The returned record, with its store-assigned id and created_at, is
        the canonical version of the message. Exactly one row is inserted on
        success and none on any error.

        Raises:
            MissingFieldError: content or fingerprint is empty
            EmptyContentError, TooLongError, SpamPatternError: content rules
            RateLimitedError: the fingerprint posted within the cooldown
            StoreUnavailableError: the database failed or timed out
        """
        try:
            message = self._submit(content, fingerprint)
        except ChatError as e:
            record_rejection(e.kind.value)
            raise
        record_submission()
        return message

    def _submit(self, content: Optional[str], fingerprint: Optional[str]) -> Message:
        if not content or not fingerprint or not fingerprint.strip():
            raise MissingFieldError()

        sanitized = sanitize_content(content)

        result = validate_content(
            sanitized,
            max_length=self.settings.max_content_length,
            spam_run_length=self.settings.spam_run_length,
        )
        if not result.valid:
            logger.info(
                "Message rejected by validation",
                extra={"extra_data": {"fingerprint": fingerprint, "kind": result.error_kind.value}},
            )
            raise result.to_error()

        with self.locks.hold(fingerprint):
            try:
                now = to_naive_utc(self.clock())
                self.rate_limiter.check(self.db, fingerprint, now)

                message = Message(
                    content=sanitized,
                    user_fingerprint=fingerprint,
                    created_at=now,
                )
                self.db.add(message)
                self.db.commit()
                self.db.refresh(message)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"Error storing message: {e}",
                    exc_info=True,
                    extra={"extra_data": {"fingerprint": fingerprint}},
                )
                raise StoreUnavailableError("Failed to create message") from e

        logger.info(
            "Message created",
            extra={"extra_data": {"message_id": message.id, "fingerprint": fingerprint}},
        )
        return message

    def list_recent(self, limit: Optional[int] = None) -> List[Message]:
        """Most recent messages, newest first, capped at ``feed_limit``."""
        feed_limit = self.settings.feed_limit
        limit = feed_limit if limit is None else min(limit, feed_limit)

        try:
            messages = (
                self.db.query(Message)
                .order_by(Message.created_at.desc(), Message.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error querying messages: {e}", exc_info=True)
            raise StoreUnavailableError("Failed to load messages") from e

        logger.debug(
            "Listed messages",
            extra={"extra_data": {"returned": len(messages), "limit": limit}},
        )
        return messages

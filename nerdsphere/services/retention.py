"""
Retention sweeper: deletes messages older than the retention horizon.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nerdsphere.core.clock import Clock, to_naive_utc, utcnow
from nerdsphere.core.config import Settings, get_settings
from nerdsphere.core.errors import StoreUnavailableError
from nerdsphere.core.logging import get_logger
from nerdsphere.core.metrics import record_sweep
from nerdsphere.models.message import Message

logger = get_logger(__name__)

DEFAULT_RETENTION = timedelta(hours=24)


def sweep(db: Session, now: datetime, retention: timedelta = DEFAULT_RETENTION) -> int:
    """
    Delete every message created before ``now - retention``.

    The age predicate is evaluated by the store in a single DELETE, so a
    message inserted during the sweep is only removed if it already
    qualifies. Running it again without new old messages deletes nothing.

    Returns:
        Number of deleted messages

    Raises:
        StoreUnavailableError: the delete failed; nothing is retried here
    """
    cutoff = to_naive_utc(now) - retention
    try:
        deleted = (
            db.query(Message)
            .filter(Message.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting old messages: {e}", exc_info=True)
        raise StoreUnavailableError("Failed to delete old messages") from e

    logger.info(
        "Old messages cleaned up",
        extra={"extra_data": {"deleted_count": deleted, "cutoff": cutoff.isoformat()}},
    )
    record_sweep(deleted)
    return deleted


class RetentionSweeper:
    """Runs :func:`sweep` on demand or on a fixed interval."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.clock = clock

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return sweep(db, self.clock(), self.settings.retention)
        finally:
            db.close()

    async def run_forever(self, interval_seconds: Optional[float] = None) -> None:
        """
        Sweep now and then every ``interval_seconds`` until cancelled.

        A failed pass is logged and left for the next tick.
        """
        interval = interval_seconds or self.settings.sweep_interval_seconds
        logger.info(
            "Retention sweeper started",
            extra={"extra_data": {"interval_seconds": interval}},
        )
        while True:
            try:
                await asyncio.to_thread(self.run_once)
            except StoreUnavailableError as e:
                logger.warning(f"Scheduled sweep failed: {e}")
            except Exception:
                logger.exception("Unexpected error in scheduled sweep")
            await asyncio.sleep(interval)

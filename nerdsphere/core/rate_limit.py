"""
Cooldown enforcement keyed by client fingerprint.

Two halves share one policy. ``LocalRateLimiter`` runs on the client to avoid
requests that would be rejected anyway; it is advisory and trivially bypassed.
``ServerRateLimiter`` checks the store for the fingerprint's latest message
and is the control that actually binds.
"""
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, MutableMapping, Optional

from sqlalchemy.orm import Session

from nerdsphere.core.errors import RateLimitedError
from nerdsphere.core.logging import get_logger
from nerdsphere.models.message import Message

logger = get_logger(__name__)

DEFAULT_COOLDOWN_SECONDS = 10
LOCAL_KEY_PREFIX = "nerdsphere_last_message"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining_seconds: int = 0


def remaining_seconds(elapsed_ms: int, window_ms: int) -> int:
    """
    Whole seconds left in the cooldown, rounded up; 0 once the window has passed.

    A negative elapsed time (clock skew) is treated as a fresh send, so the
    result never exceeds the window.
    """
    remaining_ms = window_ms - max(elapsed_ms, 0)
    if remaining_ms <= 0:
        return 0
    return -(-remaining_ms // 1000)


def cooldown_remaining(last_sent_at: datetime, now: datetime, window: timedelta) -> int:
    """Seconds until a sender whose last message is ``last_sent_at`` may post again."""
    elapsed_ms = (now - last_sent_at) // timedelta(milliseconds=1)
    return remaining_seconds(elapsed_ms, window // timedelta(milliseconds=1))


class LocalRateLimiter:
    """
    Advisory client-side throttle.

    The last-send time is kept in any string mapping (a dict, a ``shelve``
    file, ...) under a key scoped by ``client_id`` so that separate clients
    sharing a storage do not throttle each other.
    """

    def __init__(
        self,
        storage: MutableMapping[str, str],
        client_id: str,
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.key = f"{LOCAL_KEY_PREFIX}:{client_id}"
        self.cooldown_ms = cooldown_seconds * 1000
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def last_sent_ms(self) -> Optional[int]:
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed local rate limit entry: {raw!r}")
            return None

    def can_send(self) -> RateLimitDecision:
        last_sent = self.last_sent_ms()
        if last_sent is None:
            return RateLimitDecision(allowed=True)

        remaining = remaining_seconds(self._now_ms() - last_sent, self.cooldown_ms)
        if remaining == 0:
            return RateLimitDecision(allowed=True)
        return RateLimitDecision(allowed=False, remaining_seconds=remaining)

    def record_sent(self) -> None:
        """Mark now as the last send. Call only after the server accepted the message."""
        self.storage[self.key] = str(self._now_ms())


class ServerRateLimiter:
    """Authoritative cooldown check against stored messages."""

    def __init__(self, cooldown: timedelta = timedelta(seconds=DEFAULT_COOLDOWN_SECONDS)):
        self.cooldown = cooldown

    def last_message_at(self, db: Session, fingerprint: str) -> Optional[datetime]:
        return (
            db.query(Message.created_at)
            .filter(Message.user_fingerprint == fingerprint)
            .order_by(Message.created_at.desc())
            .limit(1)
            .scalar()
        )

    def check(self, db: Session, fingerprint: str, now: datetime) -> None:
        """
        Raise RateLimitedError if ``fingerprint`` posted within the cooldown.

        Raises:
            RateLimitedError: carrying the whole seconds left to wait
        """
        last_message_at = self.last_message_at(db, fingerprint)
        if last_message_at is None:
            return

        remaining = cooldown_remaining(last_message_at, now, self.cooldown)
        if remaining > 0:
            logger.info(
                "Submission rate limited",
                extra={"extra_data": {"fingerprint": fingerprint, "remaining_seconds": remaining}},
            )
            raise RateLimitedError(remaining)


class FingerprintLocks:
    """
    Per-fingerprint mutexes serialising check-then-insert within one process.

    Locks are dropped once no holder or waiter remains. Several application
    instances sharing one database still need the store to serialise.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextmanager
    def hold(self, fingerprint: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(fingerprint, threading.Lock())
            self._users[fingerprint] = self._users.get(fingerprint, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[fingerprint] -= 1
                if self._users[fingerprint] == 0:
                    del self._users[fingerprint]
                    del self._locks[fingerprint]

    def __len__(self) -> int:
        return len(self._locks)

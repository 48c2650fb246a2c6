"""
HTTP client for the chat service.

Implements the client half of the pipeline: derive the fingerprint, apply the
advisory local cooldown, post the message, and poll the feed on a fixed
interval.
"""
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, MutableMapping, Optional

import httpx

from nerdsphere.core.errors import ChatError, RateLimitedError, error_from_payload
from nerdsphere.core.fingerprint import ClientClassToken
from nerdsphere.core.logging import get_logger
from nerdsphere.core.rate_limit import DEFAULT_COOLDOWN_SECONDS, LocalRateLimiter
from nerdsphere.schemas.message import MessageResponse

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_FEED_LIMIT = 100


@dataclass
class FeedSnapshot:
    """One poll result. ``messages`` are oldest first."""
    messages: List[MessageResponse] = field(default_factory=list)
    connected: bool = True
    error: Optional[str] = None


class ChatClient:
    """
    Client for the chat HTTP API.

    Pass ``http`` to reuse an existing ``httpx.Client`` (its base URL is used
    as is), or ``base_url`` to let the client create one.
    """

    def __init__(
        self,
        user_agent: str,
        screen_width: int,
        screen_height: int,
        base_url: str = "http://localhost:8000",
        http: Optional[httpx.Client] = None,
        storage: Optional[MutableMapping[str, str]] = None,
        client_id: Optional[str] = None,
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        timeout: float = 10.0,
    ):
        self.token = ClientClassToken.from_environment(user_agent, screen_width, screen_height)
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_http = http is None
        self.rate_limiter = LocalRateLimiter(
            storage if storage is not None else {},
            client_id or uuid.uuid4().hex,
            cooldown_seconds=cooldown_seconds,
        )

    @property
    def fingerprint(self) -> str:
        return self.token.value

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "ChatClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _decode(self, response: httpx.Response, expected_status: int) -> Dict[str, Any]:
        """Return the JSON body of a successful response or raise the error it describes."""
        try:
            payload = response.json()
        except ValueError:
            # Proxies and load balancers answer with HTML or plain text
            payload = {"error": f"Unexpected response from server (HTTP {response.status_code})"}
        if not isinstance(payload, dict):
            payload = {}

        if response.status_code != expected_status or not payload.get("success"):
            raise error_from_payload(response.status_code, payload)
        return payload

    def send(self, content: str) -> MessageResponse:
        """
        Post a message and return the stored record.

        Raises:
            RateLimitedError: the local cooldown has not elapsed (no request
                is made) or the server rejected the post
            ChatError: any other rejection reported by the server
            httpx.HTTPError: transport failure
        """
        decision = self.rate_limiter.can_send()
        if not decision.allowed:
            raise RateLimitedError(decision.remaining_seconds)

        response = self.http.post(
            "/messages",
            json={"content": content, "fingerprint": self.fingerprint},
        )
        payload = self._decode(response, expected_status=201)

        self.rate_limiter.record_sent()
        return MessageResponse.model_validate(payload["data"])

    def fetch_messages(self, limit: int = DEFAULT_FEED_LIMIT) -> List[MessageResponse]:
        """Recent messages in chronological order."""
        response = self.http.get("/messages", params={"limit": limit})
        payload = self._decode(response, expected_status=200)

        messages = [MessageResponse.model_validate(item) for item in payload["data"]]
        messages.reverse()
        return messages

    def poll(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Iterator[FeedSnapshot]:
        """
        Fetch the feed every ``interval`` seconds and yield each snapshot.

        Fetch errors are yielded as disconnected snapshots and the loop
        carries on; stop by breaking out or by setting ``max_polls``.
        """
        polls = 0
        while max_polls is None or polls < max_polls:
            if polls:
                sleep(interval)
            polls += 1
            try:
                yield FeedSnapshot(messages=self.fetch_messages())
            except (httpx.HTTPError, ChatError) as e:
                logger.warning(f"Polling error: {e}")
                yield FeedSnapshot(connected=False, error=str(e))

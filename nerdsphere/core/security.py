"""
Bearer token check for the cleanup trigger.

Schedulers calling ``/cleanup`` authenticate with ``Authorization: Bearer
<CLEANUP_SECRET>``. When no secret is configured the endpoint is open.
"""
import hmac
from typing import Annotated, Optional

from fastapi import Depends, Request

from nerdsphere.core.config import Settings, get_settings
from nerdsphere.core.errors import UnauthorizedError
from nerdsphere.core.logging import get_logger

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


def verify_token(secret: str, token: str) -> bool:
    """Compare a presented token with the secret in constant time."""
    return hmac.compare_digest(secret.encode("utf-8"), token.encode("utf-8"))


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):].strip() or None


async def require_cleanup_authorization(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """
    FastAPI dependency guarding the cleanup trigger.

    Raises:
        UnauthorizedError: 401 if a secret is configured and the request does
            not present it
    """
    if not settings.is_cleanup_secret_configured:
        return

    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        logger.warning("Cleanup request missing bearer token")
        raise UnauthorizedError()

    if not verify_token(settings.cleanup_secret, token):
        logger.warning("Cleanup request presented an invalid token")
        raise UnauthorizedError()

"""
Messages endpoints: post a message and read the recent feed.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from nerdsphere.core.clock import Clock, get_clock
from nerdsphere.core.config import Settings, get_settings
from nerdsphere.core.database import get_db
from nerdsphere.core.logging import get_logger
from nerdsphere.schemas.message import (
    ErrorResponse,
    MessageResponse,
    MessagesFeedResponse,
    SubmitMessageRequest,
    SubmitMessageResponse,
)
from nerdsphere.services.messages import MessageService

logger = get_logger(__name__)

router = APIRouter(tags=["Messages"])


def get_message_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> MessageService:
    """Dependency building a MessageService for the request's session."""
    return MessageService(db, settings=settings, clock=clock)


@router.post(
    "/messages",
    response_model=SubmitMessageResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse, "description": "Missing field or invalid content"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Store unavailable"},
    },
    summary="Post a message",
    description="Sanitize, validate, rate limit and store an anonymous chat message."
)
def create_message(
    payload: SubmitMessageRequest,
    service: Annotated[MessageService, Depends(get_message_service)],
) -> SubmitMessageResponse:
    """
    Post a chat message.

    - Strips markup and unsafe patterns from the content
    - Rejects empty, overlong (>500 chars) and spammy content
    - Allows one message per fingerprint every 10 seconds
    - Returns the stored record, which supersedes any optimistic local copy
    """
    message = service.submit(payload.content, payload.fingerprint)
    return SubmitMessageResponse(data=MessageResponse.model_validate(message))


@router.get(
    "/messages",
    response_model=MessagesFeedResponse,
    summary="List recent messages",
    description="Most recent messages, newest first."
)
def list_messages(
    service: Annotated[MessageService, Depends(get_message_service)],
    limit: Annotated[int, Query(ge=1, le=100, description="Number of messages to return")] = 100,
) -> MessagesFeedResponse:
    """
    List up to ``limit`` of the most recent messages ordered by created_at descending.

    Clients reverse the list to display it chronologically.
    """
    messages = service.list_recent(limit)
    return MessagesFeedResponse(
        data=[MessageResponse.model_validate(message) for message in messages]
    )

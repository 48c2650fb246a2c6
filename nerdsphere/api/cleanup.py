"""
Cleanup endpoint triggering the retention sweeper.
"""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nerdsphere.core.clock import Clock, get_clock
from nerdsphere.core.config import Settings, get_settings
from nerdsphere.core.database import get_db
from nerdsphere.core.security import require_cleanup_authorization
from nerdsphere.schemas.message import CleanupResponse, ErrorResponse
from nerdsphere.services.retention import sweep

router = APIRouter(tags=["Retention"])


@router.api_route(
    "/cleanup",
    methods=["GET", "POST"],
    response_model=CleanupResponse,
    dependencies=[Depends(require_cleanup_authorization)],
    responses={
        401: {"description": "Missing or invalid bearer token"},
        500: {"model": ErrorResponse, "description": "Sweep failed"},
    },
    summary="Delete expired messages",
    description="Deletes every message older than the retention horizon (24 hours)."
)
def cleanup(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> CleanupResponse:
    """Run the retention sweeper once with ``now`` as the current time."""
    deleted_count = sweep(db, clock(), settings.retention)
    return CleanupResponse(deleted_count=deleted_count)

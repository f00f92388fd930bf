"""Sync trigger and status routes."""
import hmac
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel import Session, select

from rubicsync.config import Settings, get_settings
from rubicsync.db.engine import get_engine, get_session
from rubicsync.errors import AuthenticationError, ConfigurationError
from rubicsync.models.sync import EntityType, SyncRun
from rubicsync.sync.orchestrator import run_configured

logger = logging.getLogger(__name__)

router = APIRouter()


class SyncRunResponse(BaseModel):
    entity_type: EntityType
    environment: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime]
    records_processed: int
    records_failed: int
    error_message: Optional[str]


def check_bearer(authorization: Optional[str], secret: Optional[str]) -> None:
    """Raise AuthenticationError unless authorization is "Bearer <secret>".

    No secret configured means the trigger is open.
    """
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise AuthenticationError("Invalid or missing bearer token")


@router.get("/status", response_model=List[SyncRunResponse])
def sync_status(session: Session = Depends(get_session)):
    """Latest run per (entity type, environment)."""
    runs = session.exec(select(SyncRun).order_by(SyncRun.started_at.desc())).all()
    latest = {}
    for run in runs:
        latest.setdefault((run.entity_type, run.environment), run)
    return [
        SyncRunResponse(
            entity_type=run.entity_type,
            environment=run.environment,
            status=run.status.value,
            started_at=run.started_at,
            completed_at=run.completed_at,
            records_processed=run.records_processed,
            records_failed=run.records_failed,
            error_message=run.error_message,
        )
        for run in latest.values()
    ]


@router.api_route("/{entity_type}", methods=["GET", "POST"])
async def trigger_sync(
    entity_type: EntityType,
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    db_engine=Depends(get_engine),
):
    """
    Run one reconciliation of entity_type across all enabled environments.
    Blocks until every environment has reached a terminal state.
    """
    try:
        check_bearer(authorization, settings.cron_secret)
    except AuthenticationError:
        logger.warning("Unauthorized sync trigger for %s", entity_type.value)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    try:
        report = await run_configured(entity_type, db_engine, settings)
    except ConfigurationError as exc:
        logger.error("%s sync could not start: %s", entity_type.value, exc)
        return JSONResponse(
            {
                "success": False,
                "entity_type": entity_type.value,
                "error": str(exc),
                "results": {},
            },
            status_code=500,
        )

    body = report.as_dict()
    if not report.success:
        body["error"] = "; ".join(f"{env}: {err}" for env, err in report.errors.items())
        return JSONResponse(body, status_code=500)
    return body

# gatekeeper/routers/events.py
"""
Read-only access event log for the admin dashboard.
GET /events: newest first, filterable by result, credential type and time range.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from gatekeeper.database import get_db
from gatekeeper.models.access_event import AccessEvent
from gatekeeper.schemas.access_event import AccessEventOut

router = APIRouter()

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


@router.get("/events", response_model=list[AccessEventOut], summary="List access events")
def list_events(
    result: Optional[str] = None,
    credential_type: Optional[str] = None,
    from_ts: Optional[datetime] = Query(None, alias="from"),
    to_ts: Optional[datetime] = Query(None, alias="to"),
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    if limit is None or limit <= 0:
        limit = DEFAULT_LIMIT
    limit = min(limit, MAX_LIMIT)

    q = db.query(AccessEvent)
    if result:
        q = q.filter(AccessEvent.result == result)
    if credential_type:
        q = q.filter(AccessEvent.credential_type == credential_type)
    if from_ts:
        q = q.filter(AccessEvent.ts >= from_ts)
    if to_ts:
        q = q.filter(AccessEvent.ts <= to_ts)
    return q.order_by(AccessEvent.id.desc()).limit(limit).all()

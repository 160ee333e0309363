# gatekeeper/services/access_policy.py
"""Door grant lookup. No row, or allowed=false, means no access."""

from typing import Optional
from sqlalchemy.orm import Session
from gatekeeper.models.door_access import DoorAccess


def is_allowed(db: Session, door_id: Optional[int], user_id: Optional[int]) -> bool:
    if door_id is None or user_id is None:
        return False
    row = (
        db.query(DoorAccess.allowed)
        .filter(DoorAccess.door_id == door_id, DoorAccess.user_id == user_id)
        .first()
    )
    return bool(row and row.allowed)

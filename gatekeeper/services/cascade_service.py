# gatekeeper/services/cascade_service.py
"""
User updates with credential cascades.

A user's `active` flag is re-asserted onto all of the user's RFID cards and
onto the PIN that `users.current_pin_id` points at *after* the update (a
correlated subquery, not a value read earlier). When an update assigns a
new current PIN, that PIN is set to the user's resulting `active` state.

Everything runs in the caller's session and is committed once; any failure
rolls back the user row and every cascaded card/pin row together.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from gatekeeper.models.pin import Pin
from gatekeeper.models.rfid_card import RfidCard
from gatekeeper.models.user import User
from gatekeeper.utils.logger import get_logger

logger = get_logger(__name__)


class UserUpdateError(ValueError):
    """Rejected before any row is touched. `code` is returned to the admin client."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def cascade_active_state(db: Session, user_id: int, active: bool) -> None:
    db.query(RfidCard).filter(RfidCard.user_id == user_id).update(
        {RfidCard.active: active}, synchronize_session=False
    )
    current_pin = select(User.current_pin_id).where(User.id == user_id).scalar_subquery()
    db.query(Pin).filter(Pin.id == current_pin).update(
        {Pin.active: active}, synchronize_session=False
    )


def align_current_pin(db: Session, user_id: int, pin_id: int) -> None:
    user_active = db.query(User.active).filter(User.id == user_id).scalar()
    db.query(Pin).filter(Pin.id == pin_id).update(
        {Pin.active: bool(user_active)}, synchronize_session=False
    )


def apply_user_update(db: Session, user_id: int, changes: dict) -> Optional[User]:
    """
    Apply a partial update (`changes` holds only the fields the client sent).
    Returns the refreshed user, or None if no such user exists.
    """
    user = db.get(User, user_id)
    if user is None:
        return None

    pin_id = changes.get("current_pin_id")
    if pin_id is not None:
        owner_id = db.query(Pin.user_id).filter(Pin.id == pin_id).scalar()
        if owner_id != user_id:
            raise UserUpdateError("bad_current_pin_id")

    try:
        if isinstance(changes.get("full_name"), str):
            user.full_name = changes["full_name"].strip()
        if changes.get("active") is not None:
            user.active = bool(changes["active"])
        if "current_pin_id" in changes:
            user.current_pin_id = pin_id
        db.flush()

        if changes.get("active") is not None:
            cascade_active_state(db, user_id, bool(changes["active"]))
        if pin_id is not None:
            align_current_pin(db, user_id, pin_id)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info(f"User {user_id} updated: {sorted(changes)} active={user.active} pin={user.current_pin_id}")
    return user

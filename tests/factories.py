"""Row builders used across the test modules."""

from gatekeeper.models import Door, DoorAccess, Pin, RfidCard, User
from gatekeeper.services.credential_verifier import hash_pin


def add_user(db, name="Test User", active=True):
    user = User(full_name=name, active=active)
    db.add(user)
    db.commit()
    return user


def add_door(db, door_key="D1", active=True):
    door = Door(door_key=door_key, name=f"Door {door_key}", active=active)
    db.add(door)
    db.commit()
    return door


def add_card(db, user, uid, active=True):
    card = RfidCard(user_id=user.id, uid=uid, active=active)
    db.add(card)
    db.commit()
    return card


def add_pin(db, user, pin, active=True, current=True):
    row = Pin(user_id=user.id, pin_hash=hash_pin(pin, rounds=4), active=active)
    db.add(row)
    db.commit()
    if current:
        user.current_pin_id = row.id
        db.commit()
    return row


def grant(db, door, user, allowed=True):
    db.add(DoorAccess(door_id=door.id, user_id=user.id, allowed=allowed))
    db.commit()
